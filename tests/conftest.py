"""Pytest configuration and fixtures."""
from __future__ import annotations

import pathlib
from collections.abc import Iterator

import mido
import pytest

from tapedeck.config import get_settings
from tapedeck.models.events import Event, controller_event, note_event


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Run every test with debug checks on and no ambient tapedeck env vars."""
    for name in (
        "TAPEDECK_PROJECT_ROOT",
        "TAPEDECK_CHECKPOINT_INTERVAL",
        "TAPEDECK_COALESCE_WINDOW_MS",
        "TAPEDECK_PROJECT_SUFFIX",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TAPEDECK_DEBUG", "1")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def scenario_events() -> list[Event]:
    """Two controllers on cc 13, an unrelated cc 44 and one note."""
    return [
        controller_event(10, 10, 13, 55),
        note_event(20, 14, 10, 20, 30),
        controller_event(30, 15, 44, 60),
        controller_event(40, 20, 13, 66),
    ]


@pytest.fixture
def piano_events() -> list[Event]:
    """A short phrase: three notes, a sustain press/release and a modwheel move."""
    return [
        note_event(0, 0, 60, 80, 500),
        controller_event(1, 0, 64, 127),
        note_event(2, 500, 64, 70, 500),
        controller_event(3, 700, 1, 40),
        note_event(4, 1000, 67, 90, 1000),
        controller_event(5, 1900, 64, 0),
    ]


def write_midi(path: pathlib.Path) -> pathlib.Path:
    """Write a small type-1 MIDI file: two notes, sustain on/off and a marker."""
    mid = mido.MidiFile(type=1, ticks_per_beat=480)
    meta = mido.MidiTrack()
    meta.append(mido.MetaMessage("set_tempo", tempo=500_000, time=0))
    meta.append(mido.MetaMessage("marker", text="verse", time=960))
    mid.tracks.append(meta)

    notes = mido.MidiTrack()
    notes.append(mido.Message("control_change", control=64, value=127, time=0))
    notes.append(mido.Message("note_on", note=60, velocity=100, time=0))
    notes.append(mido.Message("note_off", note=60, velocity=0, time=480))
    notes.append(mido.Message("note_on", note=64, velocity=90, time=0))
    notes.append(mido.Message("note_on", note=64, velocity=0, time=480))
    notes.append(mido.Message("control_change", control=64, value=0, time=0))
    mid.tracks.append(notes)

    mid.save(str(path))
    return path


@pytest.fixture
def midi_file(tmp_path: pathlib.Path) -> pathlib.Path:
    return write_midi(tmp_path / "song.mid")
