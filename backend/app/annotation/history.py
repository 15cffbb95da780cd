"""
Linear undo/redo history of AnnotationSet snapshots.
"""
from typing import List

from app.annotation.shapes import AnnotationSet
from app.errors import AtBoundary


class HistoryStack:
    """
    Snapshot list plus a cursor

    The stack is seeded with the set the session started from, so the first
    committed shape can be undone. Committing after an undo drops every
    entry past the cursor; there is no redo branching.
    """

    def __init__(self, initial: AnnotationSet = None):
        self._entries: List[AnnotationSet] = [initial if initial is not None else AnnotationSet()]
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> AnnotationSet:
        return self._entries[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def commit(self, snapshot: AnnotationSet) -> None:
        """Append a snapshot, discarding any redo entries"""
        del self._entries[self._cursor + 1:]
        self._entries.append(snapshot)
        self._cursor = len(self._entries) - 1

    def undo(self) -> AnnotationSet:
        if not self.can_undo:
            raise AtBoundary("Nothing to undo")
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> AnnotationSet:
        if not self.can_redo:
            raise AtBoundary("Nothing to redo")
        self._cursor += 1
        return self._entries[self._cursor]
