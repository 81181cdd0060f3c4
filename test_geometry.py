"""Tests for node sizing and bounds."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

import pytest

from vectorflow.geometry import (
    STEP_WIDTH,
    bounds_of,
    compute_bounds,
    effective_size,
    is_measured,
)
from vectorflow.models import Deliverable, GraphNode, NodeData, Position, Size


def _node(node_id, x=0.0, y=0.0, width=None, height=None, deliverables=0):
    return GraphNode(
        id=node_id,
        position=Position(x=x, y=y),
        size=Size(width=width, height=height),
        data=NodeData(deliverables=tuple(
            Deliverable(id=f"{node_id}-d{i}") for i in range(deliverables)
        )),
    )


class TestEffectiveSize:

    def test_unmeasured_step_uses_defaults(self):
        assert effective_size(_node("a")) == (STEP_WIDTH, 56.0)

    def test_height_grows_with_deliverables(self):
        assert effective_size(_node("a", deliverables=2)) == (STEP_WIDTH, 136.0)

    def test_explicit_size_wins(self):
        assert effective_size(_node("a", width=300, height=100, deliverables=3)) == (300.0, 100.0)

    def test_is_measured_needs_both_sides(self):
        assert not is_measured(_node("a"))
        assert not is_measured(_node("a", width=220))
        assert is_measured(_node("a", width=220, height=56))


class TestBounds:

    def test_bounds_of_two_nodes(self):
        bounds = compute_bounds([
            _node("a", 0, 0, 100, 50),
            _node("b", 200, 100, 100, 50),
        ])
        assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (0, 0, 300, 150)
        assert bounds.width == 300
        assert bounds.height == 150

    def test_non_finite_positions_are_skipped(self):
        bounds = compute_bounds([
            _node("a", 10, 20, 100, 50),
            _node("b", float("inf"), 0, 100, 50),
            _node("c", 0, float("nan"), 100, 50),
        ])
        assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (10, 20, 110, 70)

    def test_empty_input(self):
        assert compute_bounds([]) is None
        with pytest.raises(ValueError):
            bounds_of([])
