"""Persisted history records.

History directory layout::

    history/
        0.snapshot       Snapshot — the version-0 baseline (always present)
        <N>.snapshot     Snapshot — optional checkpoint at version N
        <N>.changeset    Patch    — the diff that produced version N
        meta             HistoryMeta — next free event id, current version,
                         and the index of what is stored

All records are JSON documents produced by ``model_dump_json()``.  Field
names are the on-disk names; ``base_version`` and ``version`` are checked
against the in-memory version counter on every replay step.
"""
from __future__ import annotations

from pydantic import Field

from tapedeck.contracts.midi_types import EventId, VersionId
from tapedeck.models.base import RecordModel
from tapedeck.models.diffs import CommandDiff
from tapedeck.models.events import Event

HISTORY_FORMAT_VERSION = 1


class Snapshot(RecordModel):
    """Complete, sorted event list at a given version."""

    version: VersionId
    events: list[Event] = Field(default_factory=list)


class Patch(RecordModel):
    """The net change of one applied command.

    ``changes`` is the ordered list of steps the command was applied in.
    :class:`~tapedeck.models.diffs.ChangeList` steps hold the resolved actions
    with concrete before/after values; :class:`~tapedeck.models.diffs.TailShift`
    steps are stored as-is.  Undo reverts the steps in reverse order.
    """

    base_version: VersionId
    version: VersionId
    command: str
    changes: list[CommandDiff] = Field(default_factory=list)


class HistoryMeta(RecordModel):
    """Mutable project history state, rewritten after every move.

    ``last_version`` is the highest version with a stored patch (redo reaches
    up to it).  ``checkpoints`` lists the versions that have a snapshot file,
    ``0`` included.  Together they index the directory so it never has to be
    listed.
    """

    format: int = HISTORY_FORMAT_VERSION
    next_id: EventId = 0
    current_version: VersionId = 0
    last_version: VersionId = 0
    checkpoints: list[VersionId] = Field(default_factory=lambda: [0])
