"""Tests for the column layout engine."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

import pytest

from vectorflow.layout import (
    H_SPACING,
    H_SPACING_ANNOTATED,
    LayoutEdge,
    assign_columns,
    build_layout_ids,
    layout_nodes,
)
from vectorflow.models import GraphEdge, GraphNode, Position, Size


def _step(node_id, parent_id=None, width=None, height=None, x=0.0, y=0.0):
    return GraphNode(
        id=node_id,
        parent_id=parent_id,
        position=Position(x=x, y=y),
        size=Size(width=width, height=height),
    )


def _group(node_id, width, height, parent_id=None):
    return GraphNode(
        id=node_id,
        kind="group",
        parent_id=parent_id,
        size=Size(width=width, height=height),
    )


def _edge(src, dst, label=""):
    return GraphEdge(id=f"{src}->{dst}", source=src, target=dst, label=label)


def _positions(result):
    return {n.id: n.position for n in result.nodes}


class TestColumns:

    def test_chain_gets_one_column_per_step(self):
        nodes = [_step("c"), _step("a"), _step("b")]
        result = layout_nodes(nodes, [_edge("a", "b"), _edge("b", "c")])

        assert result.columns == [["a"], ["b"], ["c"]]
        assert not result.cycle_detected
        pos = _positions(result)
        assert pos["a"].x == 0
        assert pos["b"].x == 220 + H_SPACING
        assert pos["c"].x == 2 * (220 + H_SPACING)
        assert pos["a"].y == -28

    def test_every_edge_points_right(self):
        nodes = [_step(i) for i in "abcde"]
        edges = [_edge("a", "b"), _edge("a", "c"), _edge("c", "d"), _edge("b", "d"), _edge("d", "e")]
        result = layout_nodes(nodes, edges)
        for edge in edges:
            assert result.column_of(edge.source) < result.column_of(edge.target)

    def test_two_node_cycle_lands_in_one_column(self):
        result = layout_nodes([_step("a"), _step("b")], [_edge("a", "b"), _edge("b", "a")])

        assert result.cycle_detected
        assert result.columns == [["a", "b"]]
        assert sorted(result.cyclic_ids) == ["a", "b"]

    def test_cycle_goes_after_acyclic_columns(self):
        nodes = [_step("x"), _step("a"), _step("b")]
        edges = [_edge("x", "a"), _edge("a", "b"), _edge("b", "a")]
        result = layout_nodes(nodes, edges)

        assert result.columns == [["x"], ["a", "b"]]
        assert result.cyclic_ids == ["a", "b"]

    def test_column_is_centered_vertically(self):
        result = layout_nodes([_step("a"), _step("b")], [])
        pos = _positions(result)
        # 56 + 50 + 56 tall, centered on zero
        assert pos["a"].y == -81
        assert pos["b"].y == 25

    def test_narrow_node_is_centered_in_wide_column(self):
        nodes = [_step("a"), _step("b", width=320, height=56), _step("c")]
        result = layout_nodes(nodes, [_edge("a", "b"), _edge("a", "c")])
        pos = _positions(result)
        column_x = 220 + H_SPACING
        assert pos["b"].x == column_x
        assert pos["c"].x == column_x + 50

    def test_annotated_edge_widens_gap(self):
        result = layout_nodes([_step("a"), _step("b")], [_edge("a", "b", label="approved")])
        assert _positions(result)["b"].x == 220 + H_SPACING_ANNOTATED

    def test_empty_flow(self):
        result = layout_nodes([], [])
        assert result.is_empty
        assert result.columns == []


class TestGroups:

    def setup_method(self):
        self.nodes = [
            _group("g", 400, 300),
            _step("s1", parent_id="g", x=60, y=60),
            _step("s2", parent_id="g", x=60, y=180),
            _step("t"),
        ]

    def test_group_is_laid_out_as_one_unit(self):
        edges = [_edge("s1", "t"), _edge("s1", "s2")]
        result = layout_nodes(self.nodes, edges)

        assert result.columns == [["g"], ["t"]]
        pos = _positions(result)
        assert pos["g"] == Position(x=0, y=-150)
        assert pos["t"].x == 400 + H_SPACING

    def test_children_keep_relative_positions(self):
        result = layout_nodes(self.nodes, [_edge("s1", "t")])
        pos = _positions(result)
        assert pos["s1"] == Position(x=60, y=60)
        assert pos["s2"] == Position(x=60, y=180)

    def test_edges_inside_a_group_are_ignored(self):
        result = layout_nodes(self.nodes, [_edge("s1", "s2"), _edge("s2", "s1")])
        assert not result.cycle_detected


class TestLayoutIds:

    def test_nested_nodes_resolve_to_outermost_group(self):
        nodes = [
            _group("outer", 500, 500),
            _group("inner", 300, 300, parent_id="outer"),
            _step("s", parent_id="inner"),
        ]
        assert build_layout_ids(nodes) == {"outer": "outer", "inner": "outer", "s": "outer"}

    def test_dangling_parent_stops_walk(self):
        assert build_layout_ids([_step("s", parent_id="gone")]) == {"s": "s"}


def test_assign_columns_reports_unreached_ids():
    columns, cyclic = assign_columns(
        ["a", "b", "c"],
        [LayoutEdge("a", "b"), LayoutEdge("b", "c"), LayoutEdge("c", "b")],
    )
    assert columns == [["a"]]
    assert cyclic == ["b", "c"]


def test_column_of_unknown_id():
    result = layout_nodes([_step("a")], [])
    with pytest.raises(KeyError):
        result.column_of("missing")
