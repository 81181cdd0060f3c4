"""
Containment engine: keeps every group wrapped around its children.

For each group the pass:

  1. Computes the bounds of its direct children in the group's own
     coordinate space (children positions are relative to the group).
  2. Derives where the group should sit (bounds minus padding) and how big
     it should be (bounds plus padding on both sides).
  3. If anything moved by more than ``EPSILON``, moves and resizes the group
     and shifts every child back by the same amount, so each child keeps its
     absolute canvas position.

Groups that are themselves inside a group change size when their children
move, which can invalidate the outer group's bounds.  The pass is therefore
repeated until it settles.  Each repetition only ever grows or shrinks a
group to an exact fit, so it converges within one pass per nesting level.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .geometry import compute_bounds, effective_size
from .models import GraphNode, Position, Size

logger = logging.getLogger(__name__)


GROUP_PADDING = 60

# Corrections smaller than this are treated as float drift and ignored.
EPSILON = 1.0


def _resize_pass(nodes: list[GraphNode]) -> bool:
    """Run one containment pass over ``nodes`` in place.  Returns True on change."""
    changed = False
    index = {node.id: i for i, node in enumerate(nodes)}

    for group_id in [n.id for n in nodes if n.is_group]:
        children = [n for n in nodes if n.parent_id == group_id]
        if not children:
            continue

        bounds = compute_bounds(children)
        if bounds is None:
            logger.debug("Group %s has no finite child bounds; left unchanged", group_id)
            continue

        shift_x = bounds.min_x - GROUP_PADDING
        shift_y = bounds.min_y - GROUP_PADDING
        new_width = bounds.width + GROUP_PADDING * 2
        new_height = bounds.height + GROUP_PADDING * 2

        gi = index[group_id]
        group = nodes[gi]
        current_width = group.size.width or 0
        current_height = group.size.height or 0

        if (
            abs(shift_x) <= EPSILON
            and abs(shift_y) <= EPSILON
            and abs(current_width - new_width) <= EPSILON
            and abs(current_height - new_height) <= EPSILON
        ):
            continue

        changed = True
        nodes[gi] = group.model_copy(update={
            "position": group.position.offset(shift_x, shift_y),
            "size": Size(width=new_width, height=new_height),
        })

        # Compensate so children stay put on the canvas
        for child in children:
            ci = index[child.id]
            nodes[ci] = child.model_copy(update={
                "position": Position(
                    x=child.position.x - shift_x,
                    y=child.position.y - shift_y,
                ),
            })

    return changed


def resize_groups(nodes: Sequence[GraphNode]) -> list[GraphNode]:
    """Fit every group to its children.  Returns a new list.

    Idempotent: calling it on its own output changes nothing.
    """
    next_nodes = list(nodes)
    group_count = sum(1 for n in next_nodes if n.is_group)
    if group_count == 0:
        return next_nodes

    for _ in range(group_count + 1):
        if not _resize_pass(next_nodes):
            break
    else:
        logger.warning("Containment did not settle after %d passes", group_count + 1)

    return next_nodes


def repair_parents(nodes: Sequence[GraphNode]) -> list[GraphNode]:
    """Detach nodes whose ``parent_id`` cannot hold them.  Returns a new list.

    A parent must exist and be a group.  Parent chains must not loop back on
    themselves; a loop is broken at the first node in input order that lies
    on it.
    """
    by_id = {n.id: n for n in nodes}
    parents = {n.id: n.parent_id for n in nodes}

    for node in nodes:
        parent_id = parents[node.id]
        if parent_id is None:
            continue
        parent = by_id.get(parent_id)
        if parent is None or not parent.is_group:
            logger.warning("Node %s has invalid parent %s; moved to top level", node.id, parent_id)
            parents[node.id] = None

    for node in nodes:
        seen = {node.id}
        current = parents[node.id]
        while current is not None:
            if current == node.id:
                logger.warning("Parent chain of %s loops back to itself; moved to top level", node.id)
                parents[node.id] = None
                break
            if current in seen:
                # Loop further up the chain; fixed when its own node comes up
                break
            seen.add(current)
            current = parents[current]

    return [
        n if n.parent_id == parents[n.id] else n.model_copy(update={"parent_id": parents[n.id]})
        for n in nodes
    ]


def absolute_position(node: GraphNode, nodes: Sequence[GraphNode]) -> Position:
    """Resolve a node's absolute canvas position by walking its parent chain."""
    by_id = {n.id: n for n in nodes}
    x, y = node.position.x, node.position.y
    seen = {node.id}
    current = node
    while current.parent_id and current.parent_id not in seen:
        parent = by_id.get(current.parent_id)
        if parent is None:
            break
        x += parent.position.x
        y += parent.position.y
        seen.add(parent.id)
        current = parent
    return Position(x=x, y=y)


def fits_children(group: GraphNode, nodes: Sequence[GraphNode]) -> bool:
    """True when ``group`` encloses all of its direct children plus padding."""
    children = [n for n in nodes if n.parent_id == group.id]
    if not children:
        return True
    width, height = effective_size(group)
    for child in children:
        cw, ch = effective_size(child)
        if child.position.x < GROUP_PADDING - EPSILON:
            return False
        if child.position.y < GROUP_PADDING - EPSILON:
            return False
        if child.position.x + cw > width - GROUP_PADDING + EPSILON:
            return False
        if child.position.y + ch > height - GROUP_PADDING + EPSILON:
            return False
    return True
