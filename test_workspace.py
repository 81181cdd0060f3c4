"""Tests for multi-flow workspaces."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

import pytest

from vectorflow.containment import fits_children
from vectorflow.models import FieldDefinition, FieldSchema, Flow, GraphNode, Project
from vectorflow.parser import parse_yaml
from vectorflow.workspace import FlowWorkspace


def _project():
    schema = FieldSchema(step=(FieldDefinition(id="owner", label="Owner"),))
    return Project(
        name="Launch",
        active_flow_id="f2",
        flows=(
            Flow(id="f1", title="Plan", nodes=(GraphNode(id="a"),), field_schema=schema),
            Flow(id="f2", title="Build", nodes=(GraphNode(id="b"), GraphNode(id="c"))),
        ),
    )


class TestFlowWorkspace:

    def test_default_workspace_has_one_flow(self):
        workspace = FlowWorkspace()
        assert len(workspace.flows) == 1
        assert workspace.active_flow.title == "Flow 1"
        assert workspace.editor.nodes == []

    def test_load_activates_requested_flow(self):
        workspace = FlowWorkspace(_project())
        assert workspace.active_flow_id == "f2"
        assert [n.id for n in workspace.editor.nodes] == ["b", "c"]
        assert not workspace.editor.can_undo

    def test_switching_keeps_edits_and_resets_history(self):
        workspace = FlowWorkspace(_project())
        workspace.editor.add_step(label="New")

        workspace.switch_flow("f1")
        assert [n.id for n in workspace.editor.nodes] == ["a"]

        workspace.switch_flow("f2")
        assert len(workspace.editor.nodes) == 3
        assert not workspace.editor.can_undo

    def test_switch_to_unknown_flow(self):
        with pytest.raises(KeyError):
            FlowWorkspace().switch_flow("nope")

    def test_add_flow_inherits_first_schema(self):
        workspace = FlowWorkspace(_project())
        flow = workspace.add_flow()

        assert workspace.active_flow_id == flow.id
        assert flow.title == "Flow 3"
        assert flow.field_schema == workspace.flows[0].field_schema
        assert workspace.editor.nodes == []

    def test_only_flow_is_never_deleted(self):
        workspace = FlowWorkspace()
        assert not workspace.delete_flow(workspace.active_flow_id)
        assert len(workspace.flows) == 1

    def test_deleting_active_flow_activates_neighbour(self):
        workspace = FlowWorkspace(_project())
        assert workspace.delete_flow("f2")
        assert workspace.active_flow_id == "f1"
        assert [n.id for n in workspace.editor.nodes] == ["a"]

    def test_duplicate_flow(self):
        workspace = FlowWorkspace(_project())
        copy = workspace.duplicate_flow("f1")
        assert copy.title == "Plan (Copy)"
        assert copy.id != "f1"
        assert workspace.active_flow_id == copy.id
        assert [n.id for n in workspace.editor.nodes] == ["a"]

    def test_rename_and_reorder(self):
        workspace = FlowWorkspace(_project())
        workspace.rename_flow("f1", "Discovery")
        assert workspace.flows[0].title == "Discovery"

        assert not workspace.reorder_flow("f1", "left")
        assert workspace.reorder_flow("f1", "right")
        assert [f.id for f in workspace.flows] == ["f2", "f1"]

    def test_field_schema_applies_to_every_flow(self):
        workspace = FlowWorkspace(_project())
        fields = [FieldDefinition(id="due", label="Due", type="date")]
        workspace.update_field_schema("deliverable", fields)
        assert all(f.field_schema.deliverable == tuple(fields) for f in workspace.flows)

    def test_to_project_includes_unsaved_edits(self):
        workspace = FlowWorkspace(_project())
        workspace.editor.add_step()
        project = workspace.to_project()

        assert project.name == "Launch"
        assert project.active_flow_id == "f2"
        assert len(project.get_flow("f2").nodes) == 3

    def test_read_only_passes_through(self):
        workspace = FlowWorkspace(read_only=True)
        assert not workspace.editor.add_step().applied
        workspace.read_only = False
        assert workspace.editor.add_step().applied


GROUPED_RECIPE = """
title: Release
nodes:
  - id: a
    x: 0
  - id: b
    x: 500
  - id: t
    inputs: [b]
groups:
  - id: g
    node_ids: [a, b]
"""


def test_loaded_groups_are_fitted_before_layout():
    workspace = FlowWorkspace(parse_yaml(GROUPED_RECIPE))
    editor = workspace.editor
    assert fits_children(editor.get_node("g"), editor.nodes)

    assert editor.auto_layout().applied
    group = editor.get_node("g")
    assert fits_children(group, editor.nodes)
    assert group.position.x + group.size.width <= editor.get_node("t").position.x
