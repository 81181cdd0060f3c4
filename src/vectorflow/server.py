"""VectorFlow MCP server: MCP tools for editing flow diagrams."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import LOG_FORMAT, EngineSettings
from .editor import ActionResult
from .parser import parse_file, parse_yaml, project_to_yaml
from .workspace import FlowWorkspace

logger = logging.getLogger(__name__)


# --- Constants ---
SETTINGS = EngineSettings.from_env()

server = Server("vectorflow")
workspace = FlowWorkspace(history_limit=SETTINGS.history_limit)


def _ensure_output_dir():
    SETTINGS.output_dir.mkdir(parents=True, exist_ok=True)


def _text(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


def _action_payload(result: ActionResult) -> dict:
    payload = {
        "status": "success" if result.applied else "declined",
        "message": result.message,
        "flow_id": workspace.active_flow_id,
        "nodes": len(workspace.editor.nodes),
        "connections": len(workspace.editor.edges),
        "can_undo": workspace.editor.can_undo,
        "can_redo": workspace.editor.can_redo,
    }
    if result.warning:
        payload["warning"] = result.warning
    if result.created_ids:
        payload["created_ids"] = result.created_ids
    if result.fit_view:
        payload["fit_view"] = True
    if result.layout is not None:
        payload["columns"] = result.layout.columns
    return payload


# --- Tool definitions ---

_SELECTION_TOOLS = {
    "group_selection": "Wrap the selected top-level steps (at least two, already measured) in a new group.",
    "ungroup_selection": "Dissolve the selected group; its children keep their canvas positions.",
    "delete_selection": (
        "Delete the selected deliverable, or the selected nodes together with everything "
        "nested inside them and every connection touching them."
    ),
    "copy_selection": "Copy the selected deliverable or nodes (groups include their contents).",
    "paste": "Paste the clipboard. A deliverable needs exactly one selected step as target.",
    "duplicate_selection": "Duplicate the selection in place without touching the clipboard.",
    "undo": "Undo the last structural change in the active flow.",
    "redo": "Redo the last undone change in the active flow.",
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    tools = [
        Tool(
            name="load_project",
            description=(
                "Load a project from a YAML recipe string or file path. "
                "Supports the full project format or a simplified single-flow format "
                "(flat list of steps with inputs/outputs, optional groups). "
                "Resets undo history."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_recipe": {"type": "string", "description": "YAML recipe content."},
                    "path": {"type": "string", "description": "Path to a YAML recipe file."},
                },
            },
        ),
        Tool(
            name="save_project",
            description="Write the whole project to a YAML file. Returns the path.",
            inputSchema={
                "type": "object",
                "properties": {
                    "filename": {"type": "string", "description": "File name without extension."},
                },
            },
        ),
        Tool(
            name="get_canvas",
            description="Return the active flow's nodes and connections as JSON.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="list_flows",
            description="List the flows in the project and which one is active.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="add_step",
            description="Add a new step to the active flow.",
            inputSchema={
                "type": "object",
                "properties": {
                    "label": {"type": "string", "default": "New Step"},
                    "x": {"type": "number", "default": 0},
                    "y": {"type": "number", "default": 0},
                },
            },
        ),
        Tool(
            name="connect",
            description="Connect two nodes with a directed connection.",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": {"type": "string"},
                    "target": {"type": "string"},
                    "label": {"type": "string", "default": ""},
                },
                "required": ["source", "target"],
            },
        ),
        Tool(
            name="select",
            description=(
                "Replace the selection. Selecting several nodes at once never selects groups."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "node_ids": {"type": "array", "items": {"type": "string"}},
                    "edge_ids": {"type": "array", "items": {"type": "string"}},
                },
            },
        ),
        Tool(
            name="move_nodes",
            description="Move nodes (positions relative to their parent group) as one undoable step.",
            inputSchema={
                "type": "object",
                "properties": {
                    "positions": {
                        "type": "object",
                        "description": "Map of node id to {x, y}.",
                        "additionalProperties": {
                            "type": "object",
                            "properties": {"x": {"type": "number"}, "y": {"type": "number"}},
                            "required": ["x", "y"],
                        },
                    },
                },
                "required": ["positions"],
            },
        ),
        Tool(
            name="measure_nodes",
            description="Report rendered node sizes. Groups are refitted; history is unchanged.",
            inputSchema={
                "type": "object",
                "properties": {
                    "sizes": {
                        "type": "object",
                        "description": "Map of node id to {width, height}.",
                        "additionalProperties": {
                            "type": "object",
                            "properties": {
                                "width": {"type": "number"},
                                "height": {"type": "number"},
                            },
                            "required": ["width", "height"],
                        },
                    },
                },
                "required": ["sizes"],
            },
        ),
        Tool(
            name="auto_layout",
            description=(
                "Arrange top-level steps and groups left to right by their connections. "
                "Steps in a cycle are placed in the last column and a warning is returned."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "silent": {"type": "boolean", "default": False},
                },
            },
        ),
        Tool(
            name="switch_flow",
            description="Make another flow active. Its undo history starts empty.",
            inputSchema={
                "type": "object",
                "properties": {"flow_id": {"type": "string"}},
                "required": ["flow_id"],
            },
        ),
        Tool(
            name="add_flow",
            description="Add an empty flow and make it active.",
            inputSchema={
                "type": "object",
                "properties": {"title": {"type": "string"}},
            },
        ),
    ]
    tools.extend(
        Tool(name=name, description=description, inputSchema={"type": "object", "properties": {}})
        for name, description in _SELECTION_TOOLS.items()
    )
    return tools


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    handler = _HANDLERS.get(name)
    if handler is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(arguments or {})
    except (KeyError, ValueError) as e:
        logger.exception("Tool %s failed", name)
        return [TextContent(type="text", text=f"{name} failed: {e}")]


# --- Tool handlers ---

async def _load_project(args: dict) -> list[TextContent]:
    if "yaml_recipe" in args:
        project = parse_yaml(args["yaml_recipe"])
    elif "path" in args:
        project = parse_file(args["path"])
    else:
        return [TextContent(type="text", text="Provide either yaml_recipe or path.")]

    workspace.load_project(project)
    return _text({
        "status": "success",
        "name": workspace.name,
        "flows": [f.id for f in workspace.flows],
        "active_flow_id": workspace.active_flow_id,
        "nodes": len(workspace.editor.nodes),
        "connections": len(workspace.editor.edges),
    })


async def _save_project(args: dict) -> list[TextContent]:
    _ensure_output_dir()
    filename = args.get("filename", str(uuid.uuid4())[:8])
    yaml_path = SETTINGS.output_dir / f"{filename}.yaml"
    Path(yaml_path).write_text(project_to_yaml(workspace.to_project()))
    logger.info("Saved project to %s", yaml_path)
    return _text({"status": "success", "yaml_path": str(yaml_path)})


async def _get_canvas(args: dict) -> list[TextContent]:
    snapshot = workspace.editor.snapshot()
    return _text({
        "flow_id": workspace.active_flow_id,
        "title": workspace.active_flow.title,
        **snapshot.model_dump(mode="json"),
    })


async def _list_flows(args: dict) -> list[TextContent]:
    return _text({
        "active_flow_id": workspace.active_flow_id,
        "flows": [{"id": f.id, "title": f.title} for f in workspace.flows],
    })


async def _add_step(args: dict) -> list[TextContent]:
    result = workspace.editor.add_step(
        position=(float(args.get("x", 0)), float(args.get("y", 0))),
        label=args.get("label", "New Step"),
    )
    return _text(_action_payload(result))


async def _connect(args: dict) -> list[TextContent]:
    result = workspace.editor.connect(args["source"], args["target"], label=args.get("label", ""))
    return _text(_action_payload(result))


async def _select(args: dict) -> list[TextContent]:
    result = workspace.editor.select(args.get("node_ids", []), args.get("edge_ids", []))
    return _text(_action_payload(result))


async def _move_nodes(args: dict) -> list[TextContent]:
    positions = {
        node_id: (float(pos["x"]), float(pos["y"]))
        for node_id, pos in args["positions"].items()
    }
    result = workspace.editor.begin_drag()
    if result.applied:
        result = workspace.editor.move_nodes(positions)
    return _text(_action_payload(result))


async def _measure_nodes(args: dict) -> list[TextContent]:
    sizes = {
        node_id: (float(size["width"]), float(size["height"]))
        for node_id, size in args["sizes"].items()
    }
    return _text(_action_payload(workspace.editor.measure_nodes(sizes)))


async def _auto_layout(args: dict) -> list[TextContent]:
    result = workspace.editor.auto_layout(silent=bool(args.get("silent", False)))
    return _text(_action_payload(result))


async def _switch_flow(args: dict) -> list[TextContent]:
    flow = workspace.switch_flow(args["flow_id"])
    return _text({"status": "success", "active_flow_id": flow.id, "title": flow.title})


async def _add_flow(args: dict) -> list[TextContent]:
    flow = workspace.add_flow(args.get("title"))
    return _text({"status": "success", "active_flow_id": flow.id, "title": flow.title})


def _editor_action(method_name: str):
    async def handler(args: dict) -> list[TextContent]:
        result = getattr(workspace.editor, method_name)()
        return _text(_action_payload(result))
    return handler


_HANDLERS = {
    "load_project": _load_project,
    "save_project": _save_project,
    "get_canvas": _get_canvas,
    "list_flows": _list_flows,
    "add_step": _add_step,
    "connect": _connect,
    "select": _select,
    "move_nodes": _move_nodes,
    "measure_nodes": _measure_nodes,
    "auto_layout": _auto_layout,
    "switch_flow": _switch_flow,
    "add_flow": _add_flow,
    **{name: _editor_action(name) for name in _SELECTION_TOOLS},
}


def main():
    """Entry point for the MCP server."""
    import asyncio
    logging.basicConfig(level=SETTINGS.log_level, format=LOG_FORMAT)
    logging.getLogger("mcp.server").setLevel(logging.WARNING)
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
