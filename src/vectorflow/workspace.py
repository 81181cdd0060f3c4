"""
Flow workspace: the set of flows in a project and the editor bound to the
active one.

Only the active flow lives in the editor; the other flows are stored as
``Flow`` records.  Switching flows flushes the editor's graph back into the
active record, then loads the target flow into the editor with a fresh
history, so undo never crosses a flow boundary.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional, Sequence

from .editor import FlowEditor
from .history import MAX_HISTORY
from .models import FieldDefinition, FieldSchema, Flow, Project
from .remap import new_flow_id

logger = logging.getLogger(__name__)


class FlowWorkspace:
    """All flows of a project plus a ``FlowEditor`` for the active flow."""

    def __init__(
        self,
        project: Optional[Project] = None,
        read_only: bool = False,
        history_limit: int = MAX_HISTORY,
    ):
        self.editor = FlowEditor(read_only=read_only, history_limit=history_limit)
        self.project_id: Optional[str] = None
        self.name = "Untitled Project"
        self.flows: list[Flow] = []
        self.active_flow_id = ""
        self.load_project(project if project is not None else Project())

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def active_flow(self) -> Flow:
        return self._get(self.active_flow_id)

    @property
    def read_only(self) -> bool:
        return self.editor.read_only

    @read_only.setter
    def read_only(self, value: bool):
        self.editor.read_only = value

    def _get(self, flow_id: str) -> Flow:
        for flow in self.flows:
            if flow.id == flow_id:
                return flow
        raise KeyError(f"Unknown flow: {flow_id}")

    def _index(self, flow_id: str) -> int:
        for idx, flow in enumerate(self.flows):
            if flow.id == flow_id:
                return idx
        raise KeyError(f"Unknown flow: {flow_id}")

    def _activate(self, flow: Flow):
        self.active_flow_id = flow.id
        self.editor.load(flow.nodes, flow.edges)
        logger.debug("Active flow is now %s", flow.id)

    # ------------------------------------------------------------------
    # Project load / export
    # ------------------------------------------------------------------

    def load_project(self, project: Project):
        """Replace every flow with the project's and reset history."""
        flows = list(project.flows) or [Flow(id=new_flow_id(), title="Flow 1")]
        self.project_id = project.project_id
        self.name = project.name
        self.flows = flows

        active = project.get_flow(project.active_flow_id) if project.active_flow_id else None
        self._activate(active if active is not None else flows[0])
        logger.info("Loaded project %r with %d flow(s)", self.name, len(self.flows))

    def to_project(self) -> Project:
        """Flush the editor and return the whole project as one record."""
        self.save_current_flow()
        return Project(
            project_id=self.project_id,
            name=self.name,
            active_flow_id=self.active_flow_id,
            flows=tuple(self.flows),
        )

    # ------------------------------------------------------------------
    # Flow operations
    # ------------------------------------------------------------------

    def save_current_flow(self):
        """Write the editor's graph back into the active flow record."""
        snapshot = self.editor.snapshot()
        idx = self._index(self.active_flow_id)
        self.flows[idx] = self.flows[idx].model_copy(update={
            "nodes": snapshot.nodes,
            "edges": snapshot.edges,
        })

    def switch_flow(self, flow_id: str) -> Flow:
        """Make ``flow_id`` active.  Its history starts empty."""
        target = self._get(flow_id)
        if flow_id == self.active_flow_id:
            return target
        self.save_current_flow()
        self._activate(target)
        return target

    def add_flow(self, title: Optional[str] = None) -> Flow:
        """Append an empty flow and make it active.

        The new flow inherits the field schema of the first flow.
        """
        self.save_current_flow()
        schema = self.flows[0].field_schema if self.flows else FieldSchema()
        flow = Flow(
            id=new_flow_id(),
            title=title or f"Flow {len(self.flows) + 1}",
            field_schema=schema,
        )
        self.flows.append(flow)
        self._activate(flow)
        return flow

    def delete_flow(self, flow_id: str) -> bool:
        """Remove a flow.  The last remaining flow is never deleted.

        When the active flow is deleted, the flow that takes its place in
        the tab order (or the one before it) becomes active.
        """
        if len(self.flows) <= 1:
            logger.info("Refusing to delete the only flow %s", flow_id)
            return False

        idx = self._index(flow_id)
        del self.flows[idx]
        if flow_id == self.active_flow_id:
            self._activate(self.flows[min(idx, len(self.flows) - 1)])
        return True

    def duplicate_flow(self, flow_id: str) -> Flow:
        """Copy a flow under a new id and make the copy active."""
        self.save_current_flow()
        source = self._get(flow_id)
        copy = source.model_copy(update={
            "id": new_flow_id(),
            "title": f"{source.title} (Copy)",
        })
        self.flows.append(copy)
        self._activate(copy)
        return copy

    def rename_flow(self, flow_id: str, title: str):
        idx = self._index(flow_id)
        self.flows[idx] = self.flows[idx].model_copy(update={"title": title})

    def reorder_flow(self, flow_id: str, direction: Literal["left", "right"]) -> bool:
        """Move a flow one slot left or right.  Returns False at the edges."""
        idx = self._index(flow_id)
        new_idx = idx - 1 if direction == "left" else idx + 1
        if new_idx < 0 or new_idx >= len(self.flows):
            return False
        self.flows.insert(new_idx, self.flows.pop(idx))
        return True

    def update_field_schema(
        self,
        kind: Literal["step", "deliverable", "group", "edge"],
        fields: Sequence[FieldDefinition],
    ):
        """Replace one entity kind's field definitions in every flow."""
        self.flows = [
            flow.model_copy(update={
                "field_schema": flow.field_schema.model_copy(update={kind: tuple(fields)}),
            })
            for flow in self.flows
        ]
