"""Diff vocabulary: event actions and command diffs.

``EventAction`` is the smallest reversible unit of change.  Each action
carries the full event value(s) it touches, so it can be reverted without
looking at the track:

    InsertAction(e)       ⟷  DeleteAction(e)
    UpdateAction(a, b)    ⟷  UpdateAction(b, a)

``CommandDiff`` is what an edit command produces and what a history version
stores, step by step:

- :class:`ChangeList` — concrete, already-resolved actions.
- :class:`TailShift` — "move every event at or after ``at`` by ``delta``",
  kept compact and re-evaluated against the live track on apply and revert,
  so its stored size does not grow with the number of events it moves.
"""
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field

from tapedeck.contracts.midi_types import Time
from tapedeck.models.base import RecordModel
from tapedeck.models.events import Event


class InsertAction(RecordModel):
    kind: Literal["insert"] = "insert"
    event: Event

    @property
    def event_id(self) -> int:
        return self.event.id

    @property
    def before(self) -> Event | None:
        return None

    @property
    def after(self) -> Event | None:
        return self.event

    def revert(self) -> DeleteAction:
        return DeleteAction(event=self.event)


class DeleteAction(RecordModel):
    kind: Literal["delete"] = "delete"
    event: Event

    @property
    def event_id(self) -> int:
        return self.event.id

    @property
    def before(self) -> Event | None:
        return self.event

    @property
    def after(self) -> Event | None:
        return None

    def revert(self) -> InsertAction:
        return InsertAction(event=self.event)


class UpdateAction(RecordModel):
    kind: Literal["update"] = "update"
    before: Event
    after: Event

    @property
    def event_id(self) -> int:
        return self.after.id

    def revert(self) -> UpdateAction:
        return UpdateAction(before=self.after, after=self.before)


EventAction = Annotated[
    Union[InsertAction, DeleteAction, UpdateAction], Field(discriminator="kind")
]


class ChangeList(RecordModel):
    """An explicit, ordered list of event actions."""

    kind: Literal["changes"] = "changes"
    actions: list[EventAction] = Field(default_factory=list)


class TailShift(RecordModel):
    """Move every event with ``event.at >= at`` by ``delta`` µs."""

    kind: Literal["tail_shift"] = "tail_shift"
    at: Time
    delta: Time

    def inverse(self) -> TailShift:
        """The shift that puts the moved events back where they were."""
        return TailShift(at=self.at + self.delta, delta=-self.delta)


CommandDiff = Annotated[Union[ChangeList, TailShift], Field(discriminator="kind")]
