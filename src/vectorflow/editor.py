"""
Selection and mutation coordinator for a single flow.

``FlowEditor`` is the only writer of a flow's node and edge lists.  Every
structural action follows the same shape:

    history.take_snapshot()      # before the change, never after
    <build new node/edge lists>
    resize_groups(...)           # when geometry may have changed
    history.set_state(...)

Actions that cannot run (nothing selected, nodes not measured yet, read-only
mode, ...) return a declined ``ActionResult`` carrying the reason and leave
both the state and the history untouched.

Rendering-surface updates that are not user actions on their own (drag
progress, size measurements, selection changes) skip the snapshot so they
fold into the surrounding undo step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from .clipboard import Clipboard, ClipboardEntry, with_descendants
from .containment import GROUP_PADDING, repair_parents, resize_groups
from .geometry import STEP_WIDTH, bounds_of, is_measured
from .history import MAX_HISTORY, HistoryManager
from .layout import LayoutResult, layout_nodes
from .models import (
    GROUP_COLOR,
    Deliverable,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    NodeData,
    Position,
    Size,
)
from .remap import (
    collect_ids,
    new_deliverable_id,
    new_edge_id,
    new_group_id,
    new_node_id,
    remap_deliverable,
    remap_nodes,
)

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Outcome of an editor action.

    Attributes:
        applied:     False when the action was declined; state is unchanged.
        message:     Human-readable outcome, or the reason for declining.
        warning:     A non-fatal anomaly the caller should surface.
        fit_view:    The rendering surface should fit the viewport.
        created_ids: Ids of nodes, edges or deliverables the action created.
        layout:      The layout run, for ``auto_layout``.
    """
    applied: bool
    message: str = ""
    warning: Optional[str] = None
    fit_view: bool = False
    created_ids: list[str] = field(default_factory=list)
    layout: Optional[LayoutResult] = None


def _declined(reason: str) -> ActionResult:
    logger.info("Action declined: %s", reason)
    return ActionResult(applied=False, message=reason)


def _replace(items: Sequence[Any], item_id: str, updated: Any) -> list[Any]:
    return [updated if item.id == item_id else item for item in items]


class FlowEditor:
    """Facade over history, containment, layout and remapping for one flow.

    The history manager is passed in (or created) per editor, so several
    flows can keep independent histories.
    """

    def __init__(
        self,
        nodes: Iterable[GraphNode] = (),
        edges: Iterable[GraphEdge] = (),
        history: Optional[HistoryManager] = None,
        clipboard: Optional[Clipboard] = None,
        read_only: bool = False,
        history_limit: int = MAX_HISTORY,
    ):
        self.history = history if history is not None else HistoryManager(limit=history_limit)
        self.clipboard = clipboard if clipboard is not None else Clipboard()
        self.read_only = read_only
        self.selected_deliverable_id: Optional[str] = None
        self.load(nodes, edges)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[GraphNode]:
        return list(self.history.present.nodes)

    @property
    def edges(self) -> list[GraphEdge]:
        return list(self.history.present.edges)

    @property
    def selected_nodes(self) -> list[GraphNode]:
        return [n for n in self.history.present.nodes if n.selected]

    @property
    def selected_edges(self) -> list[GraphEdge]:
        return [e for e in self.history.present.edges if e.selected]

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def snapshot(self) -> GraphSnapshot:
        """The committed state, which is what an external serializer persists."""
        return self.history.present

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self.history.present.get_node(node_id)

    def get_edge(self, edge_id: str) -> Optional[GraphEdge]:
        for edge in self.history.present.edges:
            if edge.id == edge_id:
                return edge
        return None

    def load(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]):
        """Replace the graph and start a new, empty history.

        Parent links that cannot hold (missing parent, a step as parent, a
        loop) are cleared and every group is fitted to its children, so the
        loaded state already satisfies containment.
        """
        self.selected_deliverable_id = None
        fitted = resize_groups(repair_parents(list(nodes)))
        self.history.reset(GraphSnapshot(nodes=tuple(fitted), edges=tuple(edges)))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _commit(
        self,
        nodes: Sequence[GraphNode],
        edges: Optional[Sequence[GraphEdge]] = None,
        resize: bool = True,
    ):
        if resize:
            nodes = resize_groups(nodes)
        if edges is None:
            edges = self.history.present.edges
        self.history.set_state(GraphSnapshot(nodes=tuple(nodes), edges=tuple(edges)))

    def _check_writable(self) -> Optional[ActionResult]:
        if self.read_only:
            return _declined("Editing is disabled in read-only mode.")
        return None

    def _require_step(self, step_id: str) -> tuple[Optional[GraphNode], Optional[ActionResult]]:
        node = self.get_node(step_id)
        if node is None:
            return None, _declined(f"Step not found: {step_id}")
        if node.is_group:
            return None, _declined("Groups cannot hold deliverables.")
        return node, None

    def _set_deliverables(
        self,
        step: GraphNode,
        deliverables: Sequence[Deliverable],
    ) -> list[GraphNode]:
        updated = step.model_copy(update={
            "data": step.data.model_copy(update={"deliverables": tuple(deliverables)}),
        })
        return _replace(self.history.present.nodes, step.id, updated)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()) -> ActionResult:
        """Replace the selection.

        A multi-node (box) selection never includes groups; a group can only
        be selected on its own.
        """
        wanted_nodes = set(node_ids)
        wanted_edges = set(edge_ids)
        nodes = self.history.present.nodes

        if len(wanted_nodes) > 1:
            group_ids = {n.id for n in nodes if n.is_group}
            wanted_nodes -= group_ids

        new_nodes = [
            n if n.selected == (n.id in wanted_nodes)
            else n.model_copy(update={"selected": n.id in wanted_nodes})
            for n in nodes
        ]
        new_edges = [
            e if e.selected == (e.id in wanted_edges)
            else e.model_copy(update={"selected": e.id in wanted_edges})
            for e in self.history.present.edges
        ]
        self.selected_deliverable_id = None

        self._commit(new_nodes, new_edges, resize=False)
        return ActionResult(applied=True)

    def clear_selection(self) -> ActionResult:
        return self.select()

    def select_deliverable(self, node_id: str, deliverable_id: Optional[str]) -> ActionResult:
        """Select a deliverable, which also makes its step the only selected node."""
        if deliverable_id is None:
            self.selected_deliverable_id = None
            return ActionResult(applied=True)

        node = self.get_node(node_id)
        if node is None or all(d.id != deliverable_id for d in node.data.deliverables):
            return _declined(f"Deliverable not found: {deliverable_id}")

        self.select([node_id])
        self.selected_deliverable_id = deliverable_id
        return ActionResult(applied=True)

    # ------------------------------------------------------------------
    # Rendering-surface sync
    # ------------------------------------------------------------------

    def begin_drag(self) -> ActionResult:
        """Mark the start of a drag as an undo point."""
        declined = self._check_writable()
        if declined:
            return declined
        self.history.take_snapshot()
        return ActionResult(applied=True)

    def move_nodes(self, positions: Mapping[str, tuple[float, float]]) -> ActionResult:
        """Apply drag positions (relative to each node's parent) and refit groups."""
        declined = self._check_writable()
        if declined:
            return declined

        new_nodes = [
            n.model_copy(update={"position": Position(x=positions[n.id][0], y=positions[n.id][1])})
            if n.id in positions else n
            for n in self.history.present.nodes
        ]
        self._commit(new_nodes)
        return ActionResult(applied=True)

    def measure_nodes(self, sizes: Mapping[str, tuple[float, float]]) -> ActionResult:
        """Record sizes measured by the rendering surface and refit groups."""
        new_nodes = [
            n.model_copy(update={"size": Size(width=sizes[n.id][0], height=sizes[n.id][1])})
            if n.id in sizes else n
            for n in self.history.present.nodes
        ]
        self._commit(new_nodes)
        return ActionResult(applied=True)

    # ------------------------------------------------------------------
    # Steps and connections
    # ------------------------------------------------------------------

    def add_step(
        self,
        position: Optional[tuple[float, float]] = None,
        label: str = "New Step",
    ) -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined

        x, y = position if position is not None else (0.0, 0.0)
        node = GraphNode(
            id=new_node_id(),
            kind="step",
            position=Position(x=x, y=y),
            size=Size(width=STEP_WIDTH),
            data=NodeData(label=label),
        )
        self.history.take_snapshot()
        self._commit([*self.history.present.nodes, node], resize=False)
        logger.debug("Added step %s", node.id)
        return ActionResult(applied=True, message="Step added.", created_ids=[node.id])

    def connect(self, source: str, target: str, label: str = "") -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined

        if self.get_node(source) is None or self.get_node(target) is None:
            return _declined("Both ends of a connection must be existing nodes.")
        if source == target:
            return _declined("A node cannot be connected to itself.")
        if any(e.source == source and e.target == target for e in self.history.present.edges):
            return _declined("These nodes are already connected.")

        edge = GraphEdge(id=new_edge_id(), source=source, target=target, label=label)
        self.history.take_snapshot()
        self._commit(self.history.present.nodes, [*self.history.present.edges, edge], resize=False)
        return ActionResult(applied=True, message="Connection added.", created_ids=[edge.id])

    def update_step(
        self,
        node_id: str,
        label: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> ActionResult:
        """Change a step's (or group's) label, color or icon."""
        declined = self._check_writable()
        if declined:
            return declined

        node = self.get_node(node_id)
        if node is None:
            return _declined(f"Node not found: {node_id}")

        changes = {k: v for k, v in (("label", label), ("color", color), ("icon", icon)) if v is not None}
        if not changes:
            return _declined("No changes given.")

        updated = node.model_copy(update={"data": node.data.model_copy(update=changes)})
        self.history.take_snapshot()
        self._commit(_replace(self.history.present.nodes, node_id, updated), resize=False)
        return ActionResult(applied=True)

    def update_edge(
        self,
        edge_id: str,
        label: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> ActionResult:
        """Change a connection's label, stroke color or icon."""
        declined = self._check_writable()
        if declined:
            return declined

        edge = self.get_edge(edge_id)
        if edge is None:
            return _declined(f"Connection not found: {edge_id}")

        changes = {k: v for k, v in (("label", label), ("color", color), ("icon", icon)) if v is not None}
        if not changes:
            return _declined("No changes given.")

        self.history.take_snapshot()
        new_edges = _replace(self.history.present.edges, edge_id, edge.model_copy(update=changes))
        self._commit(self.history.present.nodes, new_edges, resize=False)
        return ActionResult(applied=True)

    def update_node_metadata(self, node_id: str, metadata: Mapping[str, Any]) -> ActionResult:
        """Merge ``metadata`` into a node's metadata; a None value removes the key."""
        declined = self._check_writable()
        if declined:
            return declined

        node = self.get_node(node_id)
        if node is None:
            return _declined(f"Node not found: {node_id}")

        merged = _merge_metadata(node.data.metadata, metadata)
        updated = node.model_copy(update={"data": node.data.model_copy(update={"metadata": merged})})
        self.history.take_snapshot()
        self._commit(_replace(self.history.present.nodes, node_id, updated), resize=False)
        return ActionResult(applied=True)

    def update_edge_metadata(self, edge_id: str, metadata: Mapping[str, Any]) -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined

        edge = self.get_edge(edge_id)
        if edge is None:
            return _declined(f"Connection not found: {edge_id}")

        updated = edge.model_copy(update={"metadata": _merge_metadata(edge.metadata, metadata)})
        self.history.take_snapshot()
        self._commit(
            self.history.present.nodes,
            _replace(self.history.present.edges, edge_id, updated),
            resize=False,
        )
        return ActionResult(applied=True)

    # ------------------------------------------------------------------
    # Deliverables
    # ------------------------------------------------------------------

    def add_deliverable(self, step_id: str, label: str = "New Deliverable") -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined
        step, declined = self._require_step(step_id)
        if declined:
            return declined

        deliverable = Deliverable(id=new_deliverable_id(), label=label)
        self.history.take_snapshot()
        self._commit(self._set_deliverables(step, [*step.data.deliverables, deliverable]))
        return ActionResult(applied=True, created_ids=[deliverable.id])

    def update_deliverable(
        self,
        step_id: str,
        deliverable_id: str,
        label: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined
        step, declined = self._require_step(step_id)
        if declined:
            return declined
        if all(d.id != deliverable_id for d in step.data.deliverables):
            return _declined(f"Deliverable not found: {deliverable_id}")

        changes = {k: v for k, v in (("label", label), ("color", color), ("icon", icon)) if v is not None}
        if not changes:
            return _declined("No changes given.")

        deliverables = [
            d.model_copy(update=changes) if d.id == deliverable_id else d
            for d in step.data.deliverables
        ]
        self.history.take_snapshot()
        self._commit(self._set_deliverables(step, deliverables), resize=False)
        return ActionResult(applied=True)

    def update_deliverable_metadata(
        self,
        step_id: str,
        deliverable_id: str,
        metadata: Mapping[str, Any],
    ) -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined
        step, declined = self._require_step(step_id)
        if declined:
            return declined
        if all(d.id != deliverable_id for d in step.data.deliverables):
            return _declined(f"Deliverable not found: {deliverable_id}")

        deliverables = [
            d.model_copy(update={"metadata": _merge_metadata(d.metadata, metadata)})
            if d.id == deliverable_id else d
            for d in step.data.deliverables
        ]
        self.history.take_snapshot()
        self._commit(self._set_deliverables(step, deliverables), resize=False)
        return ActionResult(applied=True)

    def delete_deliverable(self, step_id: str, deliverable_id: str) -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined
        step, declined = self._require_step(step_id)
        if declined:
            return declined

        remaining = [d for d in step.data.deliverables if d.id != deliverable_id]
        if len(remaining) == len(step.data.deliverables):
            return _declined(f"Deliverable not found: {deliverable_id}")

        self.history.take_snapshot()
        self._commit(self._set_deliverables(step, remaining))
        if self.selected_deliverable_id == deliverable_id:
            self.selected_deliverable_id = None
        return ActionResult(applied=True)

    def reorder_deliverables(self, step_id: str, ordered_ids: Sequence[str]) -> ActionResult:
        """Reorder a step's deliverables; ``ordered_ids`` must be a permutation."""
        declined = self._check_writable()
        if declined:
            return declined
        step, declined = self._require_step(step_id)
        if declined:
            return declined

        by_id = {d.id: d for d in step.data.deliverables}
        if sorted(ordered_ids) != sorted(by_id):
            return _declined("The new order must list every deliverable of the step exactly once.")

        self.history.take_snapshot()
        self._commit(self._set_deliverables(step, [by_id[i] for i in ordered_ids]), resize=False)
        return ActionResult(applied=True)

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def group_selection(self, label: str = "New Group") -> ActionResult:
        """Wrap the selected top-level nodes in a new group."""
        declined = self._check_writable()
        if declined:
            return declined

        members = [n for n in self.history.present.nodes if n.selected and n.is_top_level]
        if len(members) < 2:
            return _declined("Select at least two top-level steps to group them.")
        if not all(is_measured(n) for n in members):
            return _declined("Still calculating step sizes. Please try again in a moment.")

        bounds = bounds_of(members)
        group = GraphNode(
            id=new_group_id(),
            kind="group",
            position=Position(x=bounds.min_x - GROUP_PADDING, y=bounds.min_y - GROUP_PADDING),
            size=Size(
                width=bounds.width + GROUP_PADDING * 2,
                height=bounds.height + GROUP_PADDING * 2,
            ),
            data=NodeData(label=label, color=GROUP_COLOR),
        )
        member_ids = {n.id for n in members}

        new_nodes = [group]
        for node in self.history.present.nodes:
            if node.id in member_ids:
                node = node.model_copy(update={
                    "parent_id": group.id,
                    "position": Position(
                        x=node.position.x - group.position.x,
                        y=node.position.y - group.position.y,
                    ),
                    "selected": False,
                })
            new_nodes.append(node)

        self.history.take_snapshot()
        self._commit(new_nodes)
        logger.debug("Grouped %d node(s) into %s", len(members), group.id)
        return ActionResult(applied=True, message="Group created.", created_ids=[group.id])

    def ungroup_selection(self) -> ActionResult:
        """Dissolve the selected group, keeping its children where they are."""
        declined = self._check_writable()
        if declined:
            return declined

        group = next((n for n in self.history.present.nodes if n.selected and n.is_group), None)
        if group is None:
            return _declined("Select a group to ungroup.")

        # Children inherit the group's own parent (None for a top-level group)
        released = [
            child.model_copy(update={
                "parent_id": group.parent_id,
                "position": child.position.offset(group.position.x, group.position.y),
            })
            for child in self.history.present.nodes
            if child.parent_id == group.id
        ]
        released_ids = {c.id for c in released}
        remaining = [
            n for n in self.history.present.nodes
            if n.id != group.id and n.id not in released_ids
        ]
        edges = [
            e for e in self.history.present.edges
            if e.source != group.id and e.target != group.id
        ]

        self.history.take_snapshot()
        self._commit([*released, *remaining], edges)
        return ActionResult(applied=True, message="Group removed.")

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_selection(self) -> ActionResult:
        """Delete the selection.

        A selected deliverable (with its single step selected) is deleted on
        its own.  Otherwise every selected node goes, together with everything
        nested below it at any depth and every connection touching a deleted
        node; selected connections go too.
        """
        declined = self._check_writable()
        if declined:
            return declined

        selected_nodes = self.selected_nodes
        if self.selected_deliverable_id and len(selected_nodes) == 1:
            return self.delete_deliverable(selected_nodes[0].id, self.selected_deliverable_id)

        selected_edges = self.selected_edges
        if not selected_nodes and not selected_edges:
            return _declined("Nothing selected to delete.")

        doomed = {n.id for n in with_descendants(self.history.present.nodes, selected_nodes)}
        doomed_edges = {e.id for e in selected_edges}

        new_nodes = [n for n in self.history.present.nodes if n.id not in doomed]
        new_edges = [
            e for e in self.history.present.edges
            if e.id not in doomed_edges and e.source not in doomed and e.target not in doomed
        ]

        removed_edges = len(self.history.present.edges) - len(new_edges)
        self.history.take_snapshot()
        self._commit(new_nodes, new_edges)
        self.selected_deliverable_id = None
        logger.debug("Deleted %d node(s) and %d connection(s)", len(doomed), removed_edges)
        return ActionResult(applied=True)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def auto_layout(self, silent: bool = False) -> ActionResult:
        """Arrange top-level nodes left to right.

        Interactive runs (``silent=False``) ask the rendering surface to fit
        the viewport and carry the cycle warning, if any.
        """
        declined = self._check_writable()
        if declined:
            return declined

        if not self.history.present.nodes:
            return ActionResult(applied=False, message="No steps to arrange.")

        result = layout_nodes(self.history.present.nodes, self.history.present.edges)
        self.history.take_snapshot()
        self._commit(result.nodes)

        warning = None
        if result.cycle_detected:
            warning = "Some steps form a loop and have been placed in the last column."

        return ActionResult(
            applied=True,
            message="Steps have been arranged from left to right.",
            warning=None if silent else warning,
            fit_view=not silent,
            layout=result,
        )

    # ------------------------------------------------------------------
    # Clipboard
    # ------------------------------------------------------------------

    def copy_selection(self) -> ActionResult:
        entry = self.clipboard.copy(self.history.present.nodes, self.selected_deliverable_id)
        if entry is None:
            return _declined("Nothing selected to copy.")
        return ActionResult(applied=True, message=f"Copied {entry.count} item(s).")

    def paste(self, entry: Optional[ClipboardEntry] = None) -> ActionResult:
        """Paste the clipboard (or ``entry``) into the flow."""
        declined = self._check_writable()
        if declined:
            return declined

        entry = entry if entry is not None else self.clipboard.entry
        if entry is None:
            return _declined("The clipboard is empty.")

        if entry.kind == "deliverable":
            return self._paste_deliverable(entry.data)
        return self._paste_nodes(entry.data)

    def duplicate_selection(self) -> ActionResult:
        """Copy and paste the selection in one step, leaving the clipboard alone."""
        declined = self._check_writable()
        if declined:
            return declined

        entry = Clipboard().copy(self.history.present.nodes, self.selected_deliverable_id)
        if entry is None:
            return _declined("Nothing selected to duplicate.")
        return self.paste(entry)

    def _paste_nodes(self, copied: Sequence[GraphNode]) -> ActionResult:
        current = self.history.present.nodes
        current_ids = {n.id for n in current}
        pasted = remap_nodes(copied, existing_ids=collect_ids(current))

        # A lone child whose original group has since been deleted lands top-level
        pasted = [
            n.model_copy(update={"parent_id": None})
            if n.parent_id is not None
            and n.parent_id not in current_ids
            and all(p.id != n.parent_id for p in pasted)
            else n
            for n in pasted
        ]

        deselected = [n.model_copy(update={"selected": False}) if n.selected else n for n in current]
        self.history.take_snapshot()
        self._commit([*deselected, *pasted])
        self.selected_deliverable_id = None
        return ActionResult(
            applied=True,
            message=f"Pasted {len(pasted)} item(s).",
            created_ids=[n.id for n in pasted],
        )

    def _paste_deliverable(self, deliverable: Deliverable) -> ActionResult:
        selected = self.selected_nodes
        if len(selected) != 1:
            return _declined("Select a single step to paste the deliverable.")
        target = selected[0]
        if target.is_group:
            return _declined("Cannot paste deliverable into a group.")

        copy = remap_deliverable(deliverable, existing_ids=collect_ids(self.history.present.nodes))
        self.history.take_snapshot()
        self._commit(self._set_deliverables(target, [*target.data.deliverables, copy]))
        return ActionResult(applied=True, message="Pasted 1 item(s).", created_ids=[copy.id])

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined
        if not self.history.undo():
            return _declined("Nothing to undo.")
        self.selected_deliverable_id = None
        return ActionResult(applied=True)

    def redo(self) -> ActionResult:
        declined = self._check_writable()
        if declined:
            return declined
        if not self.history.redo():
            return _declined("Nothing to redo.")
        self.selected_deliverable_id = None
        return ActionResult(applied=True)


def _merge_metadata(current: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(current)
    for key, value in updates.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged
