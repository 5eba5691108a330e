"""Standard MIDI File import/export for tracks.

The core works in microseconds; SMF works in ticks.  Import walks the
merged file tracks, following tempo changes, and produces timeline events:

- note-on/note-off pairs (note-on with velocity 0 counts as note-off)
  become :class:`~tapedeck.models.events.Note` events.  Notes that are
  never closed get the shortest possible duration.
- ``control_change`` messages become Controller events.
- ``marker`` meta messages become Bookmarks (one per timestamp).

Export writes a single-track type-0 file at a fixed tempo so that the
µs → tick conversion is a straight multiplication.  All channel messages
go to channel 0.

Boundary rules:
  - No history state: import returns events, export takes them.
  - The only module that imports ``mido``.
"""
from __future__ import annotations

import logging
import pathlib
from collections.abc import Iterable

import mido

from tapedeck.core.errors import TapedeckError
from tapedeck.core.id_seq import IdSeq
from tapedeck.models.events import (
    Event,
    bookmark_event,
    controller_event,
    note_event,
    sort_events,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPO = 500_000  # µs per beat, 120 BPM
EXPORT_TICKS_PER_BEAT = 480
BOOKMARK_TEXT = "bookmark"


class SmfError(TapedeckError):
    """The file cannot be read or written as a Standard MIDI File."""


def load_events(path: pathlib.Path, id_seq: IdSeq | None = None) -> list[Event]:
    """Read *path* and return its events in track order.

    Ids are taken from *id_seq* (a fresh sequence from 0 by default) in
    file order.

    Raises:
        SmfError: When ``mido`` cannot parse the file.
    """
    ids = id_seq or IdSeq()
    try:
        mid = mido.MidiFile(str(path))
    except (OSError, ValueError, EOFError) as exc:
        raise SmfError(f"Cannot parse MIDI file '{path}': {exc}") from exc

    ticks_per_beat = int(mid.ticks_per_beat)
    tempo = DEFAULT_TEMPO
    seconds = 0.0
    events: list[Event] = []
    bookmarks: set[int] = set()
    # (channel, pitch) -> (start_us, velocity)
    active: dict[tuple[int, int], tuple[int, int]] = {}

    for msg in mido.merge_tracks(mid.tracks):
        seconds += mido.tick2second(msg.time, ticks_per_beat, tempo)
        at = round(seconds * 1_000_000)
        if msg.type == "set_tempo":
            tempo = msg.tempo
        elif msg.type == "note_on" and msg.velocity > 0:
            active[(msg.channel, msg.note)] = (at, msg.velocity)
        elif msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
            opened = active.pop((msg.channel, msg.note), None)
            if opened is not None:
                start, velocity = opened
                events.append(
                    note_event(ids.next(), start, msg.note, velocity, max(at - start, 1))
                )
        elif msg.type == "control_change":
            events.append(controller_event(ids.next(), at, msg.control, msg.value))
        elif msg.type == "marker" and at not in bookmarks:
            bookmarks.add(at)
            events.append(bookmark_event(ids.next(), at))

    for (_, pitch), (start, velocity) in active.items():
        events.append(note_event(ids.next(), start, pitch, velocity, 1))

    logger.debug(
        "✅ Parsed MIDI %s: %d events (%d notes never closed)",
        path.name,
        len(events),
        len(active),
    )
    return sort_events(events)


def _ticks(at_us: int) -> int:
    return round(mido.second2tick(at_us / 1_000_000, EXPORT_TICKS_PER_BEAT, DEFAULT_TEMPO))


def save_events(events: Iterable[Event], path: pathlib.Path) -> int:
    """Write *events* to *path* as a type-0 SMF. Returns the message count."""
    # (tick, order, message); note-offs sort before note-ons at the same tick
    # so a repeated note is not cut short.
    timed: list[tuple[int, int, mido.Message | mido.MetaMessage]] = []
    for ev in events:
        tick = _ticks(ev.at)
        note = ev.note
        controller = ev.controller
        if note is not None:
            timed.append(
                (tick, 1, mido.Message("note_on", note=note.pitch, velocity=note.velocity))
            )
            timed.append(
                (
                    _ticks(ev.at + note.duration),
                    0,
                    mido.Message("note_off", note=note.pitch, velocity=0),
                )
            )
        elif controller is not None:
            timed.append(
                (
                    tick,
                    1,
                    mido.Message(
                        "control_change",
                        control=controller.controller_id,
                        value=controller.value,
                    ),
                )
            )
        else:
            timed.append((tick, 1, mido.MetaMessage("marker", text=BOOKMARK_TEXT)))
    timed.sort(key=lambda item: (item[0], item[1]))

    track = mido.MidiTrack()
    track.append(mido.MetaMessage("set_tempo", tempo=DEFAULT_TEMPO, time=0))
    last_tick = 0
    for tick, _, msg in timed:
        tick = max(tick, 0)
        track.append(msg.copy(time=tick - last_tick))
        last_tick = tick
    track.append(mido.MetaMessage("end_of_track", time=0))

    mid = mido.MidiFile(type=0, ticks_per_beat=EXPORT_TICKS_PER_BEAT)
    mid.tracks.append(track)
    try:
        mid.save(str(path))
    except OSError as exc:
        raise SmfError(f"Cannot write MIDI file '{path}': {exc}") from exc
    logger.info("✅ Wrote %s: %d messages", path, len(timed))
    return len(timed)
