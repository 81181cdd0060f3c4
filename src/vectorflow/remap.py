"""Identity remapping for duplicated node subtrees, plus id generation."""

from __future__ import annotations

import uuid
from typing import Callable, Iterable, Sequence

from .models import Deliverable, GraphNode

PASTE_OFFSET = (50.0, 50.0)


def _fresh_id(prefix: str, taken: set[str]) -> str:
    new_id = f"{prefix}_{uuid.uuid4().hex[:12]}"
    while new_id in taken:
        new_id = f"{prefix}_{uuid.uuid4().hex[:12]}"
    taken.add(new_id)
    return new_id


def new_node_id() -> str:
    """Generate a unique step id."""
    return f"node_{uuid.uuid4().hex[:12]}"


def new_group_id() -> str:
    """Generate a unique group id."""
    return f"group_{uuid.uuid4().hex[:12]}"


def new_edge_id() -> str:
    """Generate a unique connection id."""
    return f"edge_{uuid.uuid4().hex[:12]}"


def new_deliverable_id() -> str:
    """Generate a unique deliverable id."""
    return f"del_{uuid.uuid4().hex[:12]}"


def new_flow_id() -> str:
    """Generate a unique flow id."""
    return f"flow_{uuid.uuid4().hex[:12]}"


def collect_ids(nodes: Iterable[GraphNode]) -> set[str]:
    """Every node id and deliverable id in ``nodes``."""
    ids: set[str] = set()
    for node in nodes:
        ids.add(node.id)
        ids.update(d.id for d in node.data.deliverables)
    return ids


def remap_deliverable(
    deliverable: Deliverable,
    existing_ids: Iterable[str] = (),
) -> Deliverable:
    """Return a copy of ``deliverable`` with a fresh id."""
    taken = set(existing_ids) | {deliverable.id}
    return deliverable.model_copy(update={"id": _fresh_id("del", taken)}, deep=True)


def remap_nodes(
    nodes: Sequence[GraphNode],
    existing_ids: Iterable[str] = (),
    offset: tuple[float, float] = PASTE_OFFSET,
    id_factory: Callable[[str, set[str]], str] = _fresh_id,
) -> list[GraphNode]:
    """Give a copied node subset fresh identities.

    Every node and every nested deliverable gets a new id, distinct from each
    other, from the originals, and from ``existing_ids``.

    Parent links are rewritten asymmetrically:

    - parent also in ``nodes``: point at the parent's *new* id, so a group
      copied together with its children stays a group with children;
    - parent not in ``nodes``: keep the original parent id, so a lone child
      is pasted as a sibling inside the same group instead of being orphaned.

    Roots of the copy (nodes whose parent was not copied) are shifted by
    ``offset`` so the copy does not sit on top of the original.  Children of
    copied parents keep their relative positions.  Copies come back selected
    and share no metadata with the originals.
    """
    taken = set(existing_ids) | collect_ids(nodes)

    id_map: dict[str, str] = {}
    for node in nodes:
        id_map[node.id] = id_factory("group" if node.is_group else "node", taken)

    dx, dy = offset
    remapped: list[GraphNode] = []
    for node in nodes:
        parent_id = node.parent_id
        is_root = parent_id is None or parent_id not in id_map
        if parent_id is not None and parent_id in id_map:
            parent_id = id_map[parent_id]

        deliverables = tuple(
            d.model_copy(update={"id": id_factory("del", taken)}, deep=True)
            for d in node.data.deliverables
        )

        remapped.append(node.model_copy(update={
            "id": id_map[node.id],
            "parent_id": parent_id,
            "position": node.position.offset(dx, dy) if is_root else node.position,
            "data": node.data.model_copy(update={"deliverables": deliverables}, deep=True),
            "selected": True,
        }))

    return remapped
