"""Bounded undo/redo stacks over report entry snapshots."""

from __future__ import annotations

import copy
from collections import deque

from sitedpr.models import DPRItem

Snapshot = list[DPRItem]


class UndoRedoHistory:
    """Two bounded stacks scoped to the active report.

    ``record`` is called with the pre-mutation entries; ``undo``/``redo`` take
    the entries current at the moment they run and return the snapshot to
    persist. Undo and redo themselves never call ``record``. Callers that
    persist before moving the stacks read the target with ``peek_undo`` /
    ``peek_redo`` first.
    """

    def __init__(self, max_depth: int = 20):
        self.max_depth = max_depth
        self._undo: deque[Snapshot] = deque(maxlen=max_depth)
        self._redo: deque[Snapshot] = deque(maxlen=max_depth)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def record(self, snapshot: Snapshot) -> None:
        self._undo.append(_freeze(snapshot))
        self._redo.clear()

    def peek_undo(self) -> Snapshot | None:
        return _freeze(self._undo[-1]) if self._undo else None

    def peek_redo(self) -> Snapshot | None:
        return _freeze(self._redo[-1]) if self._redo else None

    def undo(self, current: Snapshot) -> Snapshot | None:
        if not self._undo:
            return None
        previous = self._undo.pop()
        self._redo.append(_freeze(current))
        return _freeze(previous)

    def redo(self, current: Snapshot) -> Snapshot | None:
        if not self._redo:
            return None
        following = self._redo.pop()
        self._undo.append(_freeze(current))
        return _freeze(following)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()


def _freeze(entries: Snapshot) -> Snapshot:
    return [item.model_copy(deep=True) for item in entries]
