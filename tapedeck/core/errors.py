"""Exception types for the tapedeck core.

Command preconditions are not errors: an edit command that does not apply
returns ``None``.  Everything here means the operation cannot continue.
"""
from __future__ import annotations


class TapedeckError(Exception):
    """Base exception for tapedeck errors."""


class InvariantViolation(TapedeckError):
    """A diff does not match the state it is applied to.

    Raised for double inserts, updates or deletes of absent events, and
    actions whose recorded "before" value differs from the track.  Any of
    these means a defect in diff construction or a corrupted history; the
    host should offer recovery rather than keep editing.
    """

    def __init__(self, message: str, event_id: int | None = None) -> None:
        super().__init__(message)
        self.event_id = event_id


class HistoryCorruptedError(TapedeckError):
    """The stored version chain is inconsistent with itself or with the track."""


class MissingRecordError(HistoryCorruptedError):
    """A snapshot or patch that the history index lists is not on disk."""


class HistoryNotEmptyError(TapedeckError):
    """``init`` was called on a history directory that already has records."""


class HistoryDirectoryError(TapedeckError):
    """The history directory is missing, not a directory, or not writable."""


class ProjectNotFoundError(TapedeckError):
    """No project directory at (or above) the given path."""


class IncompatibleProjectError(TapedeckError):
    """The project was written by an unsupported format version."""
