"""Undo/redo history of full graph snapshots."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .models import GraphSnapshot

logger = logging.getLogger(__name__)

MAX_HISTORY = 50


class HistoryManager:
    """A bounded, linear undo/redo stack over ``GraphSnapshot`` values.

    History is only recorded by ``take_snapshot()``.  Mutations call it
    *before* applying a change and then publish the result with
    ``set_state()``; intermediate updates (a drag in progress, a size
    measurement) go through ``set_state()`` alone and so are folded into the
    surrounding undo step.

    Snapshots are frozen models, so the stacks hold them by reference.
    """

    def __init__(self, initial: Optional[GraphSnapshot] = None, limit: int = MAX_HISTORY):
        if limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self.limit = limit
        self._past: list[GraphSnapshot] = []
        self._present: GraphSnapshot = initial if initial is not None else GraphSnapshot()
        self._future: list[GraphSnapshot] = []

        # Callbacks
        self.on_state_changed: Optional[Callable[[], None]] = None

    @property
    def present(self) -> GraphSnapshot:
        return self._present

    @property
    def past(self) -> tuple[GraphSnapshot, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[GraphSnapshot, ...]:
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    def take_snapshot(self):
        """Record the current state as an undo point and drop the redo branch."""
        self._past.append(self._present)
        self._trim_past()
        self._future.clear()
        self._notify_changed()

    def set_state(self, state: GraphSnapshot):
        """Replace the present state without touching either stack."""
        self._present = state
        self._notify_changed()

    def undo(self) -> bool:
        """Step back one snapshot.  Returns False when there is nothing to undo."""
        if not self._past:
            return False
        previous = self._past.pop()
        self._future.insert(0, self._present)
        self._present = previous
        self._notify_changed()
        return True

    def redo(self) -> bool:
        """Step forward one snapshot.  Returns False when there is nothing to redo."""
        if not self._future:
            return False
        following = self._future.pop(0)
        self._past.append(self._present)
        self._trim_past()
        self._present = following
        self._notify_changed()
        return True

    def reset(self, state: GraphSnapshot):
        """Start a fresh history rooted at ``state``."""
        self._past.clear()
        self._future.clear()
        self._present = state
        logger.debug("History reset")
        self._notify_changed()

    def _trim_past(self):
        overflow = len(self._past) - self.limit
        if overflow > 0:
            del self._past[:overflow]

    def _notify_changed(self):
        if self.on_state_changed:
            self.on_state_changed()
