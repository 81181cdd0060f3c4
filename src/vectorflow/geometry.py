"""
Geometry helpers shared by the containment and layout engines.

Node sizes come from the rendering surface once it has measured a node.
Until then the engine derives a size from the node's content so layout and
containment still produce sensible results:

  - width:  ``STEP_WIDTH``
  - height: header + one row per deliverable + bottom padding
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import GraphNode


# --- Dimension constants ---

STEP_WIDTH = 220
STEP_HEADER_HEIGHT = 48
DELIVERABLE_HEIGHT = 40
DELIVERABLE_Y_PADDING = 8


@dataclass
class Bounds:
    """Axis-aligned bounding box of a node set."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


def effective_size(node: GraphNode) -> tuple[float, float]:
    """Return ``(width, height)`` for a node.

    Explicit dimensions win.  A missing width falls back to ``STEP_WIDTH``;
    a missing height is derived from the number of deliverables.
    """
    width = node.size.width or STEP_WIDTH
    height = node.size.height or (
        STEP_HEADER_HEIGHT
        + len(node.data.deliverables) * DELIVERABLE_HEIGHT
        + DELIVERABLE_Y_PADDING
    )
    return float(width), float(height)


def is_measured(node: GraphNode) -> bool:
    """True once both dimensions of the node have been set explicitly."""
    return node.size.is_explicit


def compute_bounds(nodes: Iterable[GraphNode]) -> Optional[Bounds]:
    """Compute the bounding box of a set of nodes.

    Positions are taken as-is, so for siblings inside a group the result is
    in that group's coordinate space.  Nodes with non-finite coordinates are
    skipped.  Returns None when nothing finite remains.
    """
    min_x = float("inf")
    min_y = float("inf")
    max_x = float("-inf")
    max_y = float("-inf")

    for node in nodes:
        x, y = node.position.x, node.position.y
        if not math.isfinite(x) or not math.isfinite(y):
            continue
        w, h = effective_size(node)
        min_x = min(min_x, x)
        min_y = min(min_y, y)
        max_x = max(max_x, x + w)
        max_y = max(max_y, y + h)

    if not math.isfinite(min_x) or not math.isfinite(max_x):
        return None

    return Bounds(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y)


def bounds_of(nodes: Iterable[GraphNode]) -> Bounds:
    """Like ``compute_bounds`` but an empty input is an error.

    Raises:
        ValueError: If no node with finite coordinates was given.
    """
    bounds = compute_bounds(nodes)
    if bounds is None:
        raise ValueError("Cannot compute bounds of an empty node set")
    return bounds
