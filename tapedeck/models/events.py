"""Timeline event model.

An :class:`Event` is one discrete thing on the track: a note, a controller
(pedal) level change, or a bookmark.  Events are immutable values; an edit
replaces an event with a new value carrying the same ``id``.

Total order
-----------
Tracks keep their events sorted by :meth:`Event.sort_key`:

    (at, payload rank, payload fields..., id)

Payload rank is Note=0, Controller=1, Bookmark=2.  Two events can only
compare equal on the key if they are the same event, so sorting the same
logical content always produces the same sequence regardless of the order it
was inserted in.  Snapshots, diffs and exports all rely on this.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated, Literal, Union

from pydantic import Field

from tapedeck.contracts.midi_types import (
    Duration,
    EventId,
    MidiCC,
    MidiLevel,
    MidiPitch,
    Time,
)
from tapedeck.models.base import RecordModel

# Damper pedal
MIDI_CC_SUSTAIN_ID = 64

EventKey = tuple[int, int, int, int, int, int]


def is_cc_switch_on(level: int) -> bool:
    """Switch-type controllers (sustain) read as "on" from level 64 upward."""
    return level >= 64


class Note(RecordModel):
    """A sounding note."""

    kind: Literal["note"] = "note"
    pitch: MidiPitch
    velocity: MidiLevel
    duration: Duration

    def sort_key(self) -> tuple[int, int, int, int]:
        return (0, self.pitch, self.velocity, self.duration)


class Controller(RecordModel):
    """A continuous-controller level change."""

    kind: Literal["controller"] = "controller"
    controller_id: MidiCC
    value: MidiLevel

    def sort_key(self) -> tuple[int, int, int, int]:
        return (1, self.controller_id, self.value, 0)


class Bookmark(RecordModel):
    """A zero-payload marker. At most one per timestamp."""

    kind: Literal["bookmark"] = "bookmark"

    def sort_key(self) -> tuple[int, int, int, int]:
        return (2, 0, 0, 0)


Payload = Annotated[Union[Note, Controller, Bookmark], Field(discriminator="kind")]


class Event(RecordModel):
    """One event on the track timeline."""

    id: EventId
    at: Time
    payload: Payload

    def sort_key(self) -> EventKey:
        return (self.at, *self.payload.sort_key(), self.id)

    @property
    def note(self) -> Note | None:
        return self.payload if isinstance(self.payload, Note) else None

    @property
    def controller(self) -> Controller | None:
        return self.payload if isinstance(self.payload, Controller) else None

    @property
    def is_bookmark(self) -> bool:
        return isinstance(self.payload, Bookmark)

    def moved(self, delta: int) -> Event:
        """Return this event shifted in time by *delta* µs."""
        return self.model_copy(update={"at": self.at + delta})

    def with_payload(self, payload: Note | Controller | Bookmark) -> Event:
        return self.model_copy(update={"payload": payload})


def event_sort_key(event: Event) -> EventKey:
    return event.sort_key()


def sort_events(events: Iterable[Event]) -> list[Event]:
    """Return *events* as a new list in the total track order."""
    return sorted(events, key=event_sort_key)


def is_ordered(events: list[Event] | tuple[Event, ...]) -> bool:
    """Return ``True`` when *events* is sorted by the total order."""
    return all(
        a.sort_key() <= b.sort_key() for a, b in zip(events, events[1:])
    )


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def note_event(
    event_id: int, at: int, pitch: int, velocity: int, duration: int
) -> Event:
    return Event(
        id=event_id,
        at=at,
        payload=Note(pitch=pitch, velocity=velocity, duration=duration),
    )


def controller_event(event_id: int, at: int, controller_id: int, value: int) -> Event:
    return Event(
        id=event_id,
        at=at,
        payload=Controller(controller_id=controller_id, value=value),
    )


def bookmark_event(event_id: int, at: int) -> Event:
    return Event(id=event_id, at=at, payload=Bookmark())
