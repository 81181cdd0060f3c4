"""
Data models for VectorFlow: the graph state the engine works on.

A project is a list of independent flows.  Each flow is a flat graph:

    Project
    └── Flow       : a named, independent graph (one is "active" at a time)
        ├── GraphNode  : a step or a group
        │   └── Deliverable : a nested leaf inside a step's body
        └── GraphEdge  : a directed connection between two nodes

Containment is expressed with ids, not nesting: a node's ``parent_id`` names
the group that encloses it, and its ``position`` is then relative to that
group's origin.  Top-level nodes (no ``parent_id``) use absolute canvas
coordinates.

Every model here is frozen.  Engine functions never edit a node in place;
they build a replacement with ``model_copy(update=...)``.  That is what lets
the history manager keep snapshots by reference without copying them.
"""

from __future__ import annotations
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


# Default colors (mirrors the editor palette)
STEP_COLOR = "#E5E7EB"
DELIVERABLE_COLOR = "#edf2f7"
GROUP_COLOR = "#3B82F6"
CONNECTION_COLOR = "#6B7280"

NodeKind = Literal["step", "group"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Geometry primitives
# ---------------------------------------------------------------------------

class Position(_Frozen):
    """A point.  Relative to the parent group's origin when parented."""
    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> Position:
        return Position(x=self.x + dx, y=self.y + dy)


class Size(_Frozen):
    """Explicit node dimensions.

    Either side may be unset until the rendering surface has measured the
    node.  A size only counts as explicit when both sides are set; see
    ``geometry.effective_size`` for the fallbacks.
    """
    width: Optional[float] = None
    height: Optional[float] = None

    @property
    def is_explicit(self) -> bool:
        return bool(self.width) and bool(self.height)


# ---------------------------------------------------------------------------
# Deliverable (nested leaf)
# ---------------------------------------------------------------------------

class Deliverable(_Frozen):
    """A deliverable, an ordered sub-item of a step.

    Deliverables have no position of their own; they are stacked inside the
    step body and only contribute to the step's derived height.
    """
    id: str
    label: str = "New Deliverable"
    color: str = DELIVERABLE_COLOR
    icon: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------

class NodeData(_Frozen):
    """Display payload of a node."""
    label: str = "New Step"
    color: str = STEP_COLOR
    icon: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    deliverables: tuple[Deliverable, ...] = ()


class GraphNode(_Frozen):
    """A node on the canvas, either a step or a group.

    Kind
    ----
    ``kind`` is a tagged literal rather than a subclass.  The containment and
    layout engines switch on it explicitly.

    Containment
    -----------
    ``parent_id`` references an enclosing group.  It defines containment
    only; rendering order is the rendering surface's business.
    """
    id: str
    kind: NodeKind = "step"
    parent_id: Optional[str] = None
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    data: NodeData = Field(default_factory=NodeData)
    selected: bool = False

    @property
    def is_group(self) -> bool:
        return self.kind == "group"

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None


# ---------------------------------------------------------------------------
# Edge
# ---------------------------------------------------------------------------

class GraphEdge(_Frozen):
    """A directed connection between two nodes (by id).

    Edges are transparent to containment.  They are the only input that
    orders the layout engine's columns.
    """
    id: str
    source: str
    target: str
    label: str = ""
    color: str = CONNECTION_COLOR
    icon: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    selected: bool = False

    @property
    def is_annotated(self) -> bool:
        """True when the connection carries a visible label or icon."""
        return bool(self.label) or bool(self.icon)


# ---------------------------------------------------------------------------
# Field schema (per-flow metadata field definitions)
# ---------------------------------------------------------------------------

FieldType = Literal[
    "text", "long-text", "date", "select", "multi-select",
    "number", "hours", "currency", "slider",
]


class FieldDefinition(_Frozen):
    """A metadata field that property editors offer for an entity kind."""
    id: str
    label: str
    type: FieldType = "text"
    options: tuple[str, ...] = ()


class FieldSchema(_Frozen):
    """Field definitions grouped by the entity kind they apply to."""
    step: tuple[FieldDefinition, ...] = ()
    deliverable: tuple[FieldDefinition, ...] = ()
    group: tuple[FieldDefinition, ...] = ()
    edge: tuple[FieldDefinition, ...] = ()


# ---------------------------------------------------------------------------
# Snapshot, Flow, Project
# ---------------------------------------------------------------------------

class GraphSnapshot(_Frozen):
    """An immutable ``(nodes, edges)`` pair, the unit of undo history."""
    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class Flow(_Frozen):
    """A named, independent graph inside a project."""
    id: str
    title: str = "Flow 1"
    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()
    field_schema: FieldSchema = Field(default_factory=FieldSchema)

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(nodes=self.nodes, edges=self.edges)


class Project(_Frozen):
    """The root record: every flow plus which one is active."""
    project_id: Optional[str] = None
    name: str = "Untitled Project"
    active_flow_id: Optional[str] = None
    flows: tuple[Flow, ...] = ()

    def get_flow(self, flow_id: str) -> Optional[Flow]:
        for flow in self.flows:
            if flow.id == flow_id:
                return flow
        return None
