"""In-session clipboard for nodes and deliverables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Union

from .models import Deliverable, GraphNode


@dataclass(frozen=True)
class ClipboardEntry:
    """What was last copied: a node subset or a single deliverable."""
    kind: Literal["nodes", "deliverable"]
    data: Union[tuple[GraphNode, ...], Deliverable]

    @property
    def count(self) -> int:
        return len(self.data) if self.kind == "nodes" else 1


def find_deliverable(
    nodes: Sequence[GraphNode],
    deliverable_id: str,
) -> Optional[tuple[GraphNode, Deliverable]]:
    """Locate a deliverable and the step holding it."""
    for node in nodes:
        for deliverable in node.data.deliverables:
            if deliverable.id == deliverable_id:
                return node, deliverable
    return None


def with_descendants(nodes: Sequence[GraphNode], roots: Sequence[GraphNode]) -> list[GraphNode]:
    """Expand ``roots`` with every node nested below them, keeping input order."""
    wanted = {n.id for n in roots}
    grew = True
    while grew:
        grew = False
        for node in nodes:
            if node.id not in wanted and node.parent_id in wanted:
                wanted.add(node.id)
                grew = True
    return [n for n in nodes if n.id in wanted]


class Clipboard:
    """Holds at most one ``ClipboardEntry``.

    Copying a selected group also copies everything inside it, so pasting it
    back produces a complete group rather than an empty frame.
    """

    def __init__(self):
        self.entry: Optional[ClipboardEntry] = None

    def copy(
        self,
        nodes: Sequence[GraphNode],
        selected_deliverable_id: Optional[str] = None,
    ) -> Optional[ClipboardEntry]:
        """Copy the selected deliverable, or else the selected nodes.

        Returns the new entry, or None when nothing was selected (the
        previous entry is kept).
        """
        if selected_deliverable_id:
            found = find_deliverable(nodes, selected_deliverable_id)
            if found:
                self.entry = ClipboardEntry(kind="deliverable", data=found[1].model_copy(deep=True))
                return self.entry

        selected = [n for n in nodes if n.selected]
        if not selected:
            return None

        copied = tuple(
            n.model_copy(update={"selected": False}, deep=True)
            for n in with_descendants(nodes, selected)
        )
        self.entry = ClipboardEntry(kind="nodes", data=copied)
        return self.entry

    def clear(self):
        self.entry = None
