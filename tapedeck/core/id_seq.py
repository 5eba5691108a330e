"""Event id sequence.

One counter per project.  It is passed explicitly to every command that
creates events and persisted in the history ``meta`` record, so reopening a
project never hands out an id that an earlier session already used.  Ids
taken by a command that was then refused are simply skipped.
"""
from __future__ import annotations

import threading


class IdSeq:
    """Thread-safe, monotonically increasing event id generator."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError(f"id sequence cannot start below 0 (got {start})")
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        """Return a fresh id."""
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        """Return the id the next call to :meth:`next` will produce."""
        with self._lock:
            return self._next

    def advance_past(self, event_id: int) -> None:
        """Make sure *event_id* is never produced again."""
        with self._lock:
            if event_id >= self._next:
                self._next = event_id + 1

    def __repr__(self) -> str:
        return f"IdSeq(next={self._next})"
