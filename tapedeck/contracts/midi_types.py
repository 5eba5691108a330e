"""Canonical MIDI and timeline primitive type aliases.

Single source of truth for the value ranges used by the event model and the
persisted history records.

These ``Annotated`` aliases carry constraint metadata into every Pydantic
model that uses them, so an out-of-range value in a record on disk raises
``ValidationError`` at load time instead of reaching the track.

Ranges
------
+-------------------+-------------------+----------------------------------+
| Primitive         | Range             | Notes                            |
+===================+===================+==================================+
| Pitch             | 0 – 127           | C-1=0, Middle C=60, G9=127       |
| Velocity          | 0 – 127           | Also used for CC levels          |
| CC number         | 0 – 127           | Controller number                |
| Event id          | ≥ 0               | Unique for the project lifetime  |
| Version id        | ≥ 0               | 0 is always the base snapshot    |
| Time              | any int           | µs from track start, signed      |
| Duration          | ≥ 0               | µs                               |
+-------------------+-------------------+----------------------------------+

Edit commands apply the narrower instrument range (``PIANO_LOWEST`` ..
``PIANO_HIGHEST``) on top of these.
"""
from __future__ import annotations

from typing import Annotated

from pydantic import Field


# ── MIDI byte values (7-bit, 0–127) ─────────────────────────────────────────

MidiPitch = Annotated[int, Field(ge=0, le=127)]
"""MIDI note number. C-1 = 0, Middle C = 60, G9 = 127."""

MidiLevel = Annotated[int, Field(ge=0, le=127)]
"""Note velocity or controller value."""

MidiCC = Annotated[int, Field(ge=0, le=127)]
"""MIDI Control Change controller number (0–127)."""

MAX_LEVEL = 127

# ── Timeline ─────────────────────────────────────────────────────────────────

EventId = Annotated[int, Field(ge=0)]
"""Process- and project-unique event identifier."""

VersionId = Annotated[int, Field(ge=0)]
"""Point in the linear edit history."""

Time = int
"""Microseconds from the track start. Signed so in-flight edits may go negative."""

Duration = Annotated[int, Field(ge=0)]
"""Note length in microseconds."""

# ── Instrument range ─────────────────────────────────────────────────────────

PIANO_LOWEST = 21
"""A0, the lowest key of an 88-key piano."""

PIANO_HIGHEST = 108
"""C8, the highest key of an 88-key piano."""


def is_piano_key(pitch: int) -> bool:
    """Return ``True`` when *pitch* is playable on an 88-key piano."""
    return PIANO_LOWEST <= pitch <= PIANO_HIGHEST
