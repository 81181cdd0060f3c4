"""Tests for the undo/redo history manager."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

import pytest

from vectorflow.history import MAX_HISTORY, HistoryManager
from vectorflow.models import GraphNode, GraphSnapshot


def _state(n):
    return GraphSnapshot(nodes=tuple(GraphNode(id=f"n{i}") for i in range(n)))


def _mutate(history, state):
    history.take_snapshot()
    history.set_state(state)


class TestHistoryManager:

    def test_starts_empty(self):
        history = HistoryManager()
        assert history.present == GraphSnapshot()
        assert not history.can_undo
        assert not history.can_redo

    def test_undo_redo_round_trip(self):
        s0, s1 = _state(0), _state(1)
        history = HistoryManager(s0)
        _mutate(history, s1)

        assert history.undo()
        assert history.present == s0
        assert history.can_redo
        assert history.redo()
        assert history.present == s1
        assert not history.can_redo

    def test_new_snapshot_drops_redo_branch(self):
        history = HistoryManager(_state(0))
        _mutate(history, _state(1))
        history.undo()
        _mutate(history, _state(2))

        assert not history.can_redo
        assert history.present == _state(2)

    def test_set_state_alone_records_nothing(self):
        history = HistoryManager(_state(0))
        history.set_state(_state(1))
        assert not history.can_undo

    def test_undo_and_redo_on_empty_stacks(self):
        history = HistoryManager()
        assert not history.undo()
        assert not history.redo()

    def test_past_is_capped(self):
        history = HistoryManager(_state(0))
        for i in range(1, 61):
            _mutate(history, _state(i))

        assert len(history.past) == MAX_HISTORY
        for _ in range(MAX_HISTORY):
            assert history.undo()
        assert not history.undo()
        assert history.present == _state(10)

    def test_redo_respects_cap(self):
        history = HistoryManager(_state(0), limit=2)
        for i in range(1, 4):
            _mutate(history, _state(i))
        history.undo()
        history.redo()
        assert len(history.past) == 2

    def test_reset_clears_both_stacks(self):
        history = HistoryManager(_state(0))
        _mutate(history, _state(1))
        _mutate(history, _state(2))
        history.undo()

        history.reset(_state(5))
        assert history.present == _state(5)
        assert history.past == ()
        assert history.future == ()

    def test_change_callback(self):
        calls = []
        history = HistoryManager()
        history.on_state_changed = lambda: calls.append(1)
        _mutate(history, _state(1))
        history.undo()
        assert len(calls) == 3

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            HistoryManager(limit=0)
