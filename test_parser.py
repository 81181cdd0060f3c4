"""Tests for YAML recipe parsing and export."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

import pytest

from vectorflow.models import Flow, GraphNode, Project
from vectorflow.parser import parse_file, parse_yaml, project_to_yaml


SIMPLE_RECIPE = """
title: Release Plan
nodes:
  - id: design
    label: Design
    deliverables: [Mockups, {label: API draft, icon: doc}]
    outputs: [build]
  - id: build
    label: Build
    inputs: [design]
    width: 220
    height: 136
  - id: ship
    inputs: [build]
groups:
  - id: phase-1
    label: Phase 1
    node_ids: [design, build]
"""


class TestSimpleFormat:

    def setup_method(self):
        self.project = parse_yaml(SIMPLE_RECIPE)
        self.flow = self.project.flows[0]

    def test_single_active_flow(self):
        assert len(self.project.flows) == 1
        assert self.project.active_flow_id == self.flow.id
        assert self.flow.title == "Release Plan"

    def test_nodes_and_groups(self):
        by_id = {n.id: n for n in self.flow.nodes}
        assert by_id["phase-1"].is_group
        assert by_id["design"].parent_id == "phase-1"
        assert by_id["build"].parent_id == "phase-1"
        assert by_id["ship"].parent_id is None
        assert by_id["ship"].data.label == "ship"
        assert by_id["build"].size.is_explicit

    def test_connections_are_deduplicated(self):
        pairs = [(e.source, e.target) for e in self.flow.edges]
        assert pairs == [("design", "build"), ("build", "ship")]

    def test_deliverables(self):
        design = next(n for n in self.flow.nodes if n.id == "design")
        labels = [d.label for d in design.data.deliverables]
        assert labels == ["Mockups", "API draft"]
        assert design.data.deliverables[1].icon == "doc"
        assert len({d.id for d in design.data.deliverables}) == 2


class TestFullFormat:

    def test_export_and_reload(self):
        project = Project(
            project_id="p1",
            name="Launch",
            active_flow_id="f1",
            flows=(Flow(id="f1", title="Plan", nodes=(GraphNode(id="a", selected=True),)),),
        )
        text = project_to_yaml(project)
        assert "selected" not in text

        reloaded = parse_yaml(text)
        assert reloaded.name == "Launch"
        assert reloaded.get_flow("f1").nodes[0].id == "a"
        assert not reloaded.get_flow("f1").nodes[0].selected

    def test_parse_file(self, tmp_path):
        path = tmp_path / "recipe.yaml"
        path.write_text(SIMPLE_RECIPE)
        assert parse_file(str(path)).name == "Release Plan"


@pytest.mark.parametrize("text", ["", "- just\n- a list\n"])
def test_invalid_input(text):
    with pytest.raises(ValueError):
        parse_yaml(text)
