"""Tests for the MCP tool surface."""

import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

import pytest

from vectorflow import server as vf_server
from vectorflow.models import Project


RECIPE = """
title: Onboarding
nodes:
  - id: intake
    outputs: [review]
  - id: review
    outputs: [intake]
"""


def _call(name, arguments=None):
    contents = asyncio.run(vf_server.call_tool(name, arguments or {}))
    return contents[0].text


def _call_json(name, arguments=None):
    return json.loads(_call(name, arguments))


@pytest.fixture(autouse=True)
def fresh_workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(vf_server.SETTINGS, "output_dir", tmp_path)
    vf_server.workspace.load_project(Project())
    yield


def test_tools_are_listed():
    names = {tool.name for tool in asyncio.run(vf_server.list_tools())}
    assert {"load_project", "auto_layout", "group_selection", "undo", "add_flow"} <= names


def test_load_and_layout_reports_cycle():
    loaded = _call_json("load_project", {"yaml_recipe": RECIPE})
    assert loaded["nodes"] == 2

    result = _call_json("auto_layout")
    assert result["status"] == "success"
    assert result["warning"] == "Some steps form a loop and have been placed in the last column."
    assert result["columns"] == [["intake", "review"]]


def test_declined_action():
    result = _call_json("group_selection")
    assert result["status"] == "declined"
    assert result["message"] == "Select at least two top-level steps to group them."


def test_edit_undo_and_canvas():
    step = _call_json("add_step", {"label": "Kickoff", "x": 10, "y": 20})
    assert step["can_undo"]

    canvas = _call_json("get_canvas")
    assert canvas["nodes"][0]["data"]["label"] == "Kickoff"

    _call_json("undo")
    assert _call_json("get_canvas")["nodes"] == []


def test_save_project_writes_yaml(tmp_path):
    _call_json("load_project", {"yaml_recipe": RECIPE})
    result = _call_json("save_project", {"filename": "onboarding"})
    path = Path(result["yaml_path"])
    assert path == tmp_path / "onboarding.yaml"
    assert "intake" in path.read_text()


def test_flows():
    added = _call_json("add_flow", {"title": "Second"})
    listed = _call_json("list_flows")
    assert listed["active_flow_id"] == added["active_flow_id"]
    assert [f["title"] for f in listed["flows"]] == ["Flow 1", "Second"]


def test_errors_become_text():
    assert _call("switch_flow", {"flow_id": "missing"}).startswith("switch_flow failed")
    assert _call("no_such_tool") == "Unknown tool: no_such_tool"
