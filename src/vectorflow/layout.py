"""
Column layout for VectorFlow.

Topological layout of the top-level nodes of a flow, left to right.

Groups are laid out as single units: every node resolves to its *layout id*
(the id of its outermost ancestor), connections are resolved upward to
layout-id edges, and only top-level positions are rewritten.  Nodes inside a
group keep their relative offsets and so travel with the group.

Steps:
  1. Map every node to its layout id
  2. Resolve edges to deduplicated layout-id edges (self-edges dropped)
  3. Kahn's topological sort, one column per BFS frontier
  4. Unreached (cyclic) layout ids go into one final column
  5. Stack each column vertically, centered on y = 0
  6. Advance x by the column width plus a gap, widened when the
     connections crossing into the next column carry a label or icon

Spacing constants:
  - Vertical gap between stacked nodes: 50px
  - Horizontal gap between columns: 100px, or 200px for annotated edges
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Sequence

from .geometry import effective_size
from .models import GraphEdge, GraphNode, Position

logger = logging.getLogger(__name__)


# --- Spacing constants ---

V_SPACING = 50
H_SPACING = 100
H_SPACING_ANNOTATED = 200


@dataclass
class LayoutEdge:
    """A directed edge between two layout ids."""
    from_id: str
    to_id: str
    annotated: bool = False


@dataclass
class LayoutResult:
    """Outcome of a layout run.

    ``nodes`` is the full node list with top-level positions rewritten.
    ``columns`` lists layout ids per column, left to right.  ``cyclic_ids``
    is non-empty when a cycle kept some layout ids out of the sort; those
    ids make up the last column.
    """
    nodes: list[GraphNode]
    columns: list[list[str]] = field(default_factory=list)
    cyclic_ids: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    @property
    def cycle_detected(self) -> bool:
        return bool(self.cyclic_ids)

    def column_of(self, layout_id: str) -> int:
        for idx, column in enumerate(self.columns):
            if layout_id in column:
                return idx
        raise KeyError(layout_id)


# ---------------------------------------------------------------------------
# Layout id resolution
# ---------------------------------------------------------------------------

def build_layout_ids(nodes: Sequence[GraphNode]) -> dict[str, str]:
    """Map every node id to the id of its outermost ancestor.

    A dangling ``parent_id`` stops the walk at the last node found.  A parent
    cycle stops the walk where it would revisit a node.
    """
    node_map = {n.id: n for n in nodes}
    layout_ids: dict[str, str] = {}

    for node in nodes:
        current = node
        seen = {current.id}
        while current.parent_id and current.parent_id not in seen:
            parent = node_map.get(current.parent_id)
            if parent is None:
                break
            seen.add(parent.id)
            current = parent
        layout_ids[node.id] = current.id

    return layout_ids


def _resolve_layout_edges(
    edges: Sequence[GraphEdge],
    layout_ids: dict[str, str],
    top_level_ids: set[str],
) -> list[LayoutEdge]:
    """Resolve node-level connections to layout-id edges.

    If step A (in group-1) connects to step B (top-level), this produces an
    edge group-1 -> B.  Edges inside a single layout unit are excluded and
    parallel edges are merged; a merged edge is annotated if any of its
    sources was.
    """
    merged: dict[tuple[str, str], LayoutEdge] = {}

    for edge in edges:
        src = layout_ids.get(edge.source)
        dst = layout_ids.get(edge.target)

        if not src or not dst:
            continue
        if src == dst:
            continue
        if src not in top_level_ids or dst not in top_level_ids:
            continue

        pair = (src, dst)
        existing = merged.get(pair)
        if existing is None:
            merged[pair] = LayoutEdge(from_id=src, to_id=dst, annotated=edge.is_annotated)
        elif edge.is_annotated:
            existing.annotated = True

    return list(merged.values())


# ---------------------------------------------------------------------------
# Column assignment
# ---------------------------------------------------------------------------

def assign_columns(
    item_ids: Sequence[str],
    edges: Sequence[LayoutEdge],
) -> tuple[list[list[str]], list[str]]:
    """Partition ``item_ids`` into columns with Kahn's algorithm.

    Each BFS frontier becomes one column.  Ids never reaching in-degree zero
    (because they sit on or behind a cycle) are returned separately, in
    input order.

    Returns:
        ``(columns, cyclic_ids)``
    """
    adjacency: dict[str, list[str]] = {item_id: [] for item_id in item_ids}
    indegree: dict[str, int] = {item_id: 0 for item_id in item_ids}

    for edge in edges:
        if edge.from_id in adjacency and edge.to_id in indegree:
            adjacency[edge.from_id].append(edge.to_id)
            indegree[edge.to_id] += 1

    queue = deque(item_id for item_id in item_ids if indegree[item_id] == 0)
    columns: list[list[str]] = []

    while queue:
        column: list[str] = []
        for _ in range(len(queue)):
            current = queue.popleft()
            column.append(current)
            for target in adjacency[current]:
                indegree[target] -= 1
                if indegree[target] == 0:
                    queue.append(target)
        columns.append(column)

    placed = {item_id for column in columns for item_id in column}
    cyclic_ids = [item_id for item_id in item_ids if item_id not in placed]
    return columns, cyclic_ids


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def layout_nodes(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
) -> LayoutResult:
    """Arrange the top-level nodes of a flow into left-to-right columns.

    Returns a ``LayoutResult`` holding a new node list; the input is not
    modified.  An empty node set yields an empty result.  A cycle does not
    abort the layout: the nodes involved are placed in a final column and
    reported in ``cyclic_ids``.
    """
    if not nodes:
        return LayoutResult(nodes=[])

    top_level = [n for n in nodes if n.is_top_level]
    top_level_ids = [n.id for n in top_level]
    node_map = {n.id: n for n in nodes}

    layout_ids = build_layout_ids(nodes)
    layout_edges = _resolve_layout_edges(edges, layout_ids, set(top_level_ids))

    columns, cyclic_ids = assign_columns(top_level_ids, layout_edges)
    if cyclic_ids:
        columns.append(list(cyclic_ids))
        logger.warning(
            "Cyclic dependency detected; %d node(s) placed in the last column: %s",
            len(cyclic_ids), ", ".join(cyclic_ids),
        )

    annotated_pairs = {(e.from_id, e.to_id) for e in layout_edges if e.annotated}

    positions: dict[str, Position] = {}
    current_x = 0.0

    for index, column in enumerate(columns):
        sizes = [effective_size(node_map[node_id]) for node_id in column]
        column_width = max(w for w, _ in sizes)
        column_height = sum(h for _, h in sizes) + V_SPACING * (len(column) - 1)

        current_y = -column_height / 2
        for node_id, (width, height) in zip(column, sizes):
            positions[node_id] = Position(
                x=current_x + (column_width - width) / 2,
                y=current_y,
            )
            current_y += height + V_SPACING

        gap = H_SPACING
        if index < len(columns) - 1:
            next_column = set(columns[index + 1])
            if any((src, dst) in annotated_pairs for src in column for dst in next_column):
                gap = H_SPACING_ANNOTATED
        current_x += column_width + gap

    arranged = [
        node.model_copy(update={"position": positions[node.id]})
        if node.id in positions else node
        for node in nodes
    ]
    logger.debug("Arranged %d top-level node(s) into %d column(s)", len(positions), len(columns))
    return LayoutResult(nodes=arranged, columns=columns, cyclic_ids=cyclic_ids)
