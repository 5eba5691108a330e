"""Tests for MIDI file import and export."""
from __future__ import annotations

import pathlib

import mido
import pytest

from tapedeck.core.id_seq import IdSeq
from tapedeck.models.events import Event, is_ordered
from tapedeck.services.smf import SmfError, load_events, save_events


def test_load_pairs_notes_and_reads_controllers(midi_file: pathlib.Path) -> None:
    events = load_events(midi_file)
    assert is_ordered(events)

    notes = [(e.at, e.note.pitch, e.note.velocity, e.note.duration) for e in events if e.note]
    assert notes == [(0, 60, 100, 500_000), (500_000, 64, 90, 500_000)]

    sustain = [(e.at, e.controller.value) for e in events if e.controller]
    assert sustain == [(0, 127), (1_000_000, 0)]

    assert [e.at for e in events if e.is_bookmark] == [1_000_000]
    assert sorted(e.id for e in events) == list(range(5))


def test_load_takes_ids_from_sequence(midi_file: pathlib.Path) -> None:
    seq = IdSeq(100)
    events = load_events(midi_file, seq)
    assert min(e.id for e in events) == 100
    assert seq.peek() == 105


def test_unclosed_note_gets_minimal_duration(tmp_path: pathlib.Path) -> None:
    mid = mido.MidiFile(ticks_per_beat=480)
    track = mido.MidiTrack()
    track.append(mido.Message("note_on", note=70, velocity=50, time=240))
    mid.tracks.append(track)
    path = tmp_path / "open.mid"
    mid.save(str(path))

    (event,) = load_events(path)
    assert event.at == 250_000
    assert event.note.duration == 1


def test_load_rejects_garbage(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "bad.mid"
    path.write_bytes(b"not a midi file")
    with pytest.raises(SmfError):
        load_events(path)


def test_export_then_import_keeps_content(tmp_path: pathlib.Path, piano_events: list[Event]) -> None:
    # Export quantises to ticks; whole beats survive the conversion exactly.
    beat = 500_000
    events = [e.model_copy(update={"at": e.at * beat // 100}) for e in piano_events]
    events = [
        e.with_payload(e.note.model_copy(update={"duration": beat})) if e.note else e
        for e in events
    ]
    out = tmp_path / "out.mid"
    count = save_events(events, out)
    assert count == 9

    loaded = load_events(out)

    def content(evs: list[Event]) -> list[tuple]:
        return sorted((e.at, e.payload.sort_key()) for e in evs)

    assert content(loaded) == content(events)
