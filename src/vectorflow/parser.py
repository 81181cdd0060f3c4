"""YAML recipe parser for VectorFlow.

Supports two formats:
1. Full project YAML (a ``project`` mapping holding every flow)
2. Simplified recipe format (one flow: flat list of steps + optional groups)
"""

from __future__ import annotations
from pathlib import Path
from typing import Optional

import yaml

from .models import (
    GROUP_COLOR,
    STEP_COLOR,
    Deliverable,
    Flow,
    GraphEdge,
    GraphNode,
    NodeData,
    Position,
    Project,
    Size,
)
from .remap import new_deliverable_id, new_flow_id


def parse_yaml(yaml_str: str) -> Project:
    """Parse a YAML string into a Project model."""
    data = yaml.safe_load(yaml_str)
    if not data:
        raise ValueError("Empty YAML input")
    if not isinstance(data, dict):
        raise ValueError("YAML recipe must be a mapping")

    # Check if it's a full project document
    if "project" in data:
        return Project.model_validate(data["project"])

    # Otherwise, treat as simplified format
    return _parse_simple_format(data)


def parse_file(path: str) -> Project:
    """Parse a YAML file into a Project model."""
    content = Path(path).read_text()
    return parse_yaml(content)


def _parse_simple_format(data: dict) -> Project:
    """Parse simplified recipe format.

    Example:
        title: Release Plan
        nodes:
          - id: design
            label: Design
            deliverables: [Mockups, "API draft"]
          - id: build
            label: Build
            inputs: [design]
          - id: ship
            inputs: [build]
        groups:
          - id: phase-1
            label: Phase 1
            node_ids: [design, build]
    """
    group_of: dict[str, str] = {}
    nodes: list[GraphNode] = []

    for group_data in data.get("groups", []):
        for node_id in group_data.get("node_ids", []):
            group_of[node_id] = group_data["id"]
        nodes.append(GraphNode(
            id=group_data["id"],
            kind="group",
            data=NodeData(
                label=group_data.get("label", "New Group"),
                color=group_data.get("color", GROUP_COLOR),
            ),
        ))

    edges: list[GraphEdge] = []
    seen: set[tuple[str, str]] = set()

    for node_data in data.get("nodes", []):
        node = _parse_node(node_data, group_of.get(node_data["id"]))
        nodes.append(node)

        # Connections are deduplicated when declared on both ends
        pairs = [(src, node.id) for src in node_data.get("inputs", [])]
        pairs += [(node.id, dst) for dst in node_data.get("outputs", [])]
        for src, dst in pairs:
            if (src, dst) in seen:
                continue
            seen.add((src, dst))
            edges.append(GraphEdge(id=f"{src}->{dst}", source=src, target=dst))

    flow = Flow(
        id=data.get("id") or new_flow_id(),
        title=data.get("title", "Flow 1"),
        nodes=tuple(nodes),
        edges=tuple(edges),
    )
    return Project(
        name=data.get("name", data.get("title", "Untitled Project")),
        active_flow_id=flow.id,
        flows=(flow,),
    )


def _parse_node(data: dict, parent_id: Optional[str]) -> GraphNode:
    """Parse a single step from YAML data."""
    deliverables = []
    for item in data.get("deliverables", []):
        if isinstance(item, str):
            deliverables.append(Deliverable(id=new_deliverable_id(), label=item))
        else:
            deliverables.append(Deliverable(**{"id": new_deliverable_id(), **item}))

    size = Size()
    if "width" in data or "height" in data:
        size = Size(width=data.get("width"), height=data.get("height"))

    return GraphNode(
        id=data["id"],
        kind="step",
        parent_id=parent_id,
        position=Position(x=float(data.get("x", 0)), y=float(data.get("y", 0))),
        size=size,
        data=NodeData(
            label=data.get("label", data["id"]),
            color=data.get("color", STEP_COLOR),
            icon=data.get("icon"),
            metadata=data.get("metadata", {}),
            deliverables=tuple(deliverables),
        ),
    )


def project_to_yaml(project: Project) -> str:
    """Serialize a Project model to the full YAML format.

    Selection flags are editor state, not document state, and are dropped.
    """
    data = project.model_dump(mode="json", exclude_none=True)
    for flow in data.get("flows", []):
        for item in flow.get("nodes", []) + flow.get("edges", []):
            item.pop("selected", None)
    return yaml.safe_dump({"project": data}, default_flow_style=False, sort_keys=False)
