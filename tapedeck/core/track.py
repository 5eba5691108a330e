"""Track — the ordered event sequence being edited.

The track owns one invariant: ``events`` is always sorted by
:meth:`~tapedeck.models.events.Event.sort_key`.  It is only changed through
:meth:`Track.reset`, :meth:`Track.insert`, :meth:`Track.delete_by_ids` and
:meth:`Track.patch`.

Readers (playback scheduling, export, rendering) take ``track.events``: an
immutable tuple that each mutation replaces in one assignment.  A reader
holding a tuple keeps a consistent point-in-time view no matter what the
editing thread does next.  Writers are expected to be serialized by the
owner (the history manager holds a lock around every mutation).

``version`` is a local dirty counter bumped by every mutation.  It is not
the persisted history version.
"""
from __future__ import annotations

import bisect
import heapq
import logging
from collections.abc import Iterable, Iterator

from tapedeck.config import get_settings
from tapedeck.core.changeset import Changeset
from tapedeck.core.errors import InvariantViolation
from tapedeck.models.events import Event, event_sort_key, is_ordered, sort_events

logger = logging.getLogger(__name__)

DEFAULT_CC_VALUE = 0


def _event_time(event: Event) -> int:
    return event.at


class Track:
    """Sorted, id-indexed sequence of timeline events."""

    def __init__(self, events: Iterable[Event] = ()) -> None:
        self.version = 0
        self._events: tuple[Event, ...] = ()
        self._index: dict[int, Event] = {}
        self._publish(tuple(sort_events(events)), bump=False)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def events(self) -> tuple[Event, ...]:
        return self._events

    def get(self, event_id: int) -> Event | None:
        return self._index.get(event_id)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._index

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def first_index_at(self, time: int) -> int:
        """Index of the first event with ``at >= time`` (``len`` if none)."""
        return bisect.bisect_left(self._events, time, key=_event_time)

    def events_from(self, time: int) -> tuple[Event, ...]:
        """Events with ``at >= time``."""
        return self._events[self.first_index_at(time):]

    def events_between(self, start: int, end: int) -> tuple[Event, ...]:
        """Events with ``start <= at < end``."""
        events = self._events
        return events[self.first_index_at(start):bisect.bisect_left(events, end, key=_event_time)]

    def value_at(self, time: int, controller_id: int) -> int:
        """Level of *controller_id* in effect just before *time*.

        Scans backward from the first event at or after *time*, so an event
        exactly at *time* is not counted.  Among several events sharing a
        timestamp the last one in track order wins.  Returns 0 when the
        controller was never set.
        """
        events = self._events
        idx = self.first_index_at(time)
        while idx > 0:
            idx -= 1
            cc = events[idx].controller
            if cc is not None and cc.controller_id == controller_id:
                return cc.value
        return DEFAULT_CC_VALUE

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def reset(self, events: Iterable[Event]) -> None:
        """Replace the whole event list (file import, snapshot load)."""
        ordered = tuple(sort_events(events))
        ids = {ev.id for ev in ordered}
        if len(ids) != len(ordered):
            raise InvariantViolation("duplicate event ids in track reset")
        self._publish(ordered)

    def insert(self, event: Event) -> None:
        if event.id in self._index:
            raise InvariantViolation(f"double insert of event {event.id}", event.id)
        events = self._events
        idx = bisect.bisect_left(events, event.sort_key(), key=event_sort_key)
        self._publish(events[:idx] + (event,) + events[idx:])

    def delete_by_ids(self, event_ids: Iterable[int]) -> None:
        doomed = set(event_ids)
        if not doomed:
            return
        self._publish(tuple(ev for ev in self._events if ev.id not in doomed))

    def patch(self, changeset: Changeset) -> None:
        """Apply every action of *changeset*.

        All actions are validated before anything changes, so a rejected
        changeset leaves the track untouched.

        Raises:
            InvariantViolation: an Insert of a live id, or a Delete/Update
                whose recorded "before" value is not what the track holds.
        """
        removed: set[int] = set()
        added: list[Event] = []
        for action in changeset:
            event_id = action.event_id
            current = self._index.get(event_id)
            before = action.before
            if before is None:
                if current is not None:
                    raise InvariantViolation(
                        f"insert of event {event_id} which is already in the track",
                        event_id,
                    )
            else:
                if current is None:
                    raise InvariantViolation(
                        f"event {event_id} is not in the track", event_id
                    )
                if current != before:
                    raise InvariantViolation(
                        f"event {event_id} differs from its recorded value: "
                        f"track has {current!r}, diff expects {before!r}",
                        event_id,
                    )
                removed.add(event_id)
            after = action.after
            if after is not None:
                added.append(after)

        if not removed and not added:
            return
        kept: Iterable[Event] = (
            (ev for ev in self._events if ev.id not in removed) if removed else self._events
        )
        merged = heapq.merge(kept, sort_events(added), key=event_sort_key)
        self._publish(tuple(merged))

    def _publish(self, events: tuple[Event, ...], *, bump: bool = True) -> None:
        if get_settings().debug and not is_ordered(events):
            logger.error("❌ Track order broken after mutation")
            raise InvariantViolation("track events are out of order")
        self._index = {ev.id: ev for ev in events}
        self._events = events
        if bump:
            self.version += 1

    def __repr__(self) -> str:
        return f"Track(events={len(self._events)}, version={self.version})"
