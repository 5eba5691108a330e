"""Edit commands — turn a user intent into reversible diffs.

Every command is a plain function that reads the track (never mutates it)
and returns an :data:`AppliedCommand`, or ``None`` when the command does not
apply.  ``None`` is a soft refusal: the caller applies nothing and no
history version is written.

Diffs are resolved against the live track only when they are applied
(:func:`resolve_diff`), so a :class:`~tapedeck.models.diffs.TailShift`
stays a two-number record however many events it ends up moving.

Bulk selection edits skip the events they cannot change (a transpose that
would leave the piano range, a note edit on a controller) and keep the
rest.  If nothing is left the whole command is refused.

Boundary rules:
  - No filesystem access, no history state.
  - Fresh event ids come only from the :class:`~tapedeck.core.id_seq.IdSeq`
    passed in.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from tapedeck.contracts.midi_types import MAX_LEVEL, is_piano_key
from tapedeck.core.changeset import Changeset
from tapedeck.core.errors import InvariantViolation
from tapedeck.core.id_seq import IdSeq
from tapedeck.core.track import Track
from tapedeck.models.diffs import (
    ChangeList,
    CommandDiff,
    DeleteAction,
    EventAction,
    InsertAction,
    TailShift,
    UpdateAction,
)
from tapedeck.models.events import (
    MIDI_CC_SUSTAIN_ID,
    Event,
    bookmark_event,
    controller_event,
    is_cc_switch_on,
    note_event,
)

logger = logging.getLogger(__name__)

# Earliest time an edit may move an event to.
TIMELINE_START = 0


class CommandId(str, Enum):
    """Identity of the command that produced a history version."""

    SHIFT_TAIL = "shift_tail"
    TAPE_INSERT = "tape_insert"
    TAPE_DELETE = "tape_delete"
    ADD_NOTE = "add_note"
    DELETE_EVENTS = "delete_events"
    SET_DAMPER = "set_damper"
    EVENTS_SHIFT = "events_shift"
    NOTES_STRETCH = "notes_stretch"
    NOTES_TRANSPOSE = "notes_transpose"
    NOTES_ACCENT = "notes_accent"
    SET_BOOKMARK = "set_bookmark"
    CLEAR_BOOKMARK = "clear_bookmark"


AppliedCommand = tuple[CommandId, list[CommandDiff]]


class TimeRange(NamedTuple):
    """Half-open time interval ``[start, end)`` in µs."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


# ---------------------------------------------------------------------------
# Diff resolution
# ---------------------------------------------------------------------------


def _tail_changes(track: Track, shift: TailShift) -> list[EventAction]:
    return [
        UpdateAction(before=ev, after=ev.moved(shift.delta))
        for ev in track.events_from(shift.at)
    ]


def resolve_diff(track: Track, diff: CommandDiff) -> Changeset:
    """Expand *diff* into concrete actions against the current *track*."""
    if isinstance(diff, TailShift):
        return Changeset(_tail_changes(track, diff))
    return Changeset(diff.actions)


def resolve_revert(track: Track, diff: CommandDiff) -> Changeset:
    """Expand the inverse of *diff* against the already patched *track*."""
    if isinstance(diff, TailShift):
        return Changeset(_tail_changes(track, diff.inverse()))
    return Changeset(action.revert() for action in reversed(diff.actions))


def apply_diffs(track: Track, diffs: Sequence[CommandDiff]) -> list[CommandDiff]:
    """Patch *track* with each step of *diffs* in order.

    Returns the steps as they should be stored: change lists reduced to the
    net resolved actions, tail shifts unchanged.  Steps that moved nothing
    are dropped: an empty tail shift is not safe to revert, since its inverse
    would pick up whatever sits just before the cut point.

    If a step is rejected, the steps already applied are reverted before
    the error propagates.
    """
    applied: list[CommandDiff] = []
    try:
        for diff in diffs:
            changeset = resolve_diff(track, diff)
            if not changeset:
                continue
            track.patch(changeset)
            if isinstance(diff, TailShift):
                applied.append(diff)
            else:
                applied.append(ChangeList(actions=changeset.actions()))
    except InvariantViolation:
        revert_diffs(track, applied)
        raise
    return applied


def revert_diffs(track: Track, diffs: Sequence[CommandDiff]) -> None:
    """Undo *diffs* on *track*, last step first."""
    for diff in reversed(diffs):
        track.patch(resolve_revert(track, diff))


def tail_shift_is_reversible(track: Track, at: int, delta: int) -> bool:
    """Whether ``TailShift(at, delta)`` can be undone exactly.

    The inverse moves every event at or after ``at + delta``.  When the tail
    moves earlier, an untouched event in ``[at + delta, at)`` would be picked
    up by the inverse as well.
    """
    if delta >= 0:
        return True
    return not track.events_between(at + delta, at)


# ---------------------------------------------------------------------------
# Timeline commands
# ---------------------------------------------------------------------------


def shift_tail(track: Track, at: int, delta: int) -> Optional[AppliedCommand]:
    """Move every event at or after *at* by *delta* µs."""
    if delta == 0:
        return None
    tail = track.events_from(at)
    if tail and tail[0].at + delta < TIMELINE_START:
        logger.debug("shift_tail refused: event %d would land before 0", tail[0].id)
        return None
    if not tail_shift_is_reversible(track, at, delta):
        logger.debug("shift_tail refused: tail would run into events before %d", at)
        return None
    return CommandId.SHIFT_TAIL, [TailShift(at=at, delta=delta)]


def tape_insert(track: Track, time_range: TimeRange) -> Optional[AppliedCommand]:
    """Open a gap of ``time_range.length`` at ``time_range.start``."""
    if time_range.length <= 0:
        return None
    return CommandId.TAPE_INSERT, [
        TailShift(at=time_range.start, delta=time_range.length)
    ]


def tape_delete(track: Track, time_range: TimeRange) -> Optional[AppliedCommand]:
    """Cut ``[start, end)`` out of the timeline and close the gap."""
    if time_range.length <= 0:
        return None
    doomed = track.events_between(time_range.start, time_range.end)
    shift = TailShift(at=time_range.end, delta=-time_range.length)
    # Undo moves everything from start onward back; refuse if that would catch
    # an event the delete did not own.
    remaining = track.events_from(time_range.end)
    if remaining and remaining[0].at + shift.delta < time_range.start:
        return None
    diffs: list[CommandDiff] = []
    if doomed:
        diffs.append(ChangeList(actions=[DeleteAction(event=ev) for ev in doomed]))
    diffs.append(shift)
    return CommandId.TAPE_DELETE, diffs


# ---------------------------------------------------------------------------
# Selection edits
# ---------------------------------------------------------------------------


class EditKind(str, Enum):
    """What :func:`edit_selected` does to each selected event."""

    DELETE = "delete"
    SHIFT = "shift"
    STRETCH = "stretch"
    TRANSPOSE = "transpose"
    ACCENT = "accent"


@dataclass(frozen=True)
class SelectionEdit:
    """A selection edit: the operation and its signed amount.

    ``amount`` is µs for SHIFT and STRETCH, semitones for TRANSPOSE and
    velocity steps for ACCENT.  DELETE ignores it.
    """

    kind: EditKind
    amount: int = 0


_COMMAND_FOR_EDIT: dict[EditKind, CommandId] = {
    EditKind.DELETE: CommandId.DELETE_EVENTS,
    EditKind.SHIFT: CommandId.EVENTS_SHIFT,
    EditKind.STRETCH: CommandId.NOTES_STRETCH,
    EditKind.TRANSPOSE: CommandId.NOTES_TRANSPOSE,
    EditKind.ACCENT: CommandId.NOTES_ACCENT,
}


def _edited(event: Event, edit: SelectionEdit) -> Optional[EventAction]:
    """The action *edit* makes on *event*, or ``None`` to skip it."""
    if edit.kind is EditKind.DELETE:
        return DeleteAction(event=event)

    if edit.kind is EditKind.SHIFT:
        at = event.at + edit.amount
        if at < TIMELINE_START:
            return None
        after = event.moved(edit.amount)
    else:
        note = event.note
        if note is None:
            return None
        if edit.kind is EditKind.STRETCH:
            duration = note.duration + edit.amount
            if duration <= 0:
                return None
            after = event.with_payload(note.model_copy(update={"duration": duration}))
        elif edit.kind is EditKind.TRANSPOSE:
            pitch = note.pitch + edit.amount
            if not is_piano_key(pitch):
                return None
            after = event.with_payload(note.model_copy(update={"pitch": pitch}))
        elif edit.kind is EditKind.ACCENT:
            velocity = note.velocity + edit.amount
            if not 0 <= velocity <= MAX_LEVEL:
                return None
            after = event.with_payload(note.model_copy(update={"velocity": velocity}))
        else:
            raise ValueError(f"unknown selection edit: {edit.kind!r}")

    if after == event:
        return None
    return UpdateAction(before=event, after=after)


def edit_selected(
    track: Track, selection: Iterable[int], edit: SelectionEdit
) -> Optional[AppliedCommand]:
    """Apply *edit* to every selected event that accepts it."""
    selected = set(selection)
    actions: list[EventAction] = []
    skipped = 0
    for event in track.events:
        if event.id not in selected:
            continue
        action = _edited(event, edit)
        if action is None:
            skipped += 1
        else:
            actions.append(action)
    if skipped:
        logger.debug(
            "%s: skipped %d of %d selected events", edit.kind.value, skipped, len(selected)
        )
    if not actions:
        return None
    return _COMMAND_FOR_EDIT[edit.kind], [ChangeList(actions=actions)]


def delete_selected(track: Track, selection: Iterable[int]) -> Optional[AppliedCommand]:
    return edit_selected(track, selection, SelectionEdit(EditKind.DELETE))


def shift_selected(
    track: Track, selection: Iterable[int], delta: int
) -> Optional[AppliedCommand]:
    return edit_selected(track, selection, SelectionEdit(EditKind.SHIFT, delta))


def stretch_selected_notes(
    track: Track, selection: Iterable[int], delta: int
) -> Optional[AppliedCommand]:
    return edit_selected(track, selection, SelectionEdit(EditKind.STRETCH, delta))


def transpose_selected_notes(
    track: Track, selection: Iterable[int], delta: int
) -> Optional[AppliedCommand]:
    return edit_selected(track, selection, SelectionEdit(EditKind.TRANSPOSE, delta))


def accent_selected_notes(
    track: Track, selection: Iterable[int], delta: int
) -> Optional[AppliedCommand]:
    return edit_selected(track, selection, SelectionEdit(EditKind.ACCENT, delta))


# ---------------------------------------------------------------------------
# Event creation
# ---------------------------------------------------------------------------


def add_note(
    id_seq: IdSeq,
    time_range: TimeRange,
    pitch: int,
    velocity: int = MAX_LEVEL // 2,
) -> Optional[AppliedCommand]:
    """Insert one note covering *time_range*."""
    if time_range.length <= 0 or not is_piano_key(pitch):
        return None
    if not 0 <= velocity <= MAX_LEVEL:
        return None
    event = note_event(id_seq.next(), time_range.start, pitch, velocity, time_range.length)
    return CommandId.ADD_NOTE, [ChangeList(actions=[InsertAction(event=event)])]


def set_damper(
    id_seq: IdSeq,
    track: Track,
    time_range: TimeRange,
    on: bool,
    controller_id: int = MIDI_CC_SUSTAIN_ID,
) -> Optional[AppliedCommand]:
    """Force a switch controller (the damper pedal by default) on or off over *time_range*.

    The controller's state just before ``start`` and just after ``end`` is
    read first.  Every event of that controller strictly inside the range
    (``start <= at < end``) is then removed, and boundary events are added
    only where the state would otherwise be wrong: at ``start`` to switch
    into *on*, at ``end`` to restore the state that followed the range.
    Events at ``end`` lie outside the range and are never touched; when one
    exists it already restores that state.  A removed event identical to
    the needed ``start`` event is kept instead, which makes a repeated call
    a no-op.
    """
    if time_range.length <= 0:
        return None
    start, end = time_range
    on_before = is_cc_switch_on(track.value_at(start, controller_id))
    on_after = is_cc_switch_on(track.value_at(end + 1, controller_id))

    def _matches(ev: Event) -> bool:
        return ev.controller is not None and ev.controller.controller_id == controller_id

    cleared = [ev for ev in track.events_between(start, end) if _matches(ev)]
    restored_at_end = any(_matches(ev) for ev in track.events_between(end, end + 1))

    wanted: list[tuple[int, bool]] = []
    if on_before != on:
        wanted.append((start, on))
    if on_after != on and not restored_at_end:
        wanted.append((end, on_after))

    actions: list[EventAction] = []
    for at, state in wanted:
        value = MAX_LEVEL if state else 0
        kept = next(
            (ev for ev in cleared if ev.at == at and ev.controller.value == value),
            None,
        )
        if kept is not None:
            cleared.remove(kept)
            continue
        actions.append(
            InsertAction(event=controller_event(id_seq.next(), at, controller_id, value))
        )
    actions[:0] = [DeleteAction(event=ev) for ev in cleared]

    if not actions:
        return None
    return CommandId.SET_DAMPER, [ChangeList(actions=actions)]


def bookmark_at(track: Track, at: int) -> Optional[Event]:
    """The bookmark at exactly *at*, if any."""
    for ev in track.events_between(at, at + 1):
        if ev.is_bookmark:
            return ev
    return None


def set_bookmark(id_seq: IdSeq, track: Track, at: int) -> Optional[AppliedCommand]:
    if bookmark_at(track, at) is not None:
        return None
    event = bookmark_event(id_seq.next(), at)
    return CommandId.SET_BOOKMARK, [ChangeList(actions=[InsertAction(event=event)])]


def clear_bookmark(track: Track, at: int) -> Optional[AppliedCommand]:
    existing = bookmark_at(track, at)
    if existing is None:
        return None
    return CommandId.CLEAR_BOOKMARK, [ChangeList(actions=[DeleteAction(event=existing)])]
