"""Changeset — the net effect of one logical edit, keyed by event id.

Adding actions one by one folds them into at most one action per event,
using this table (``prior → new``):

=====================  ===================  ===============================
prior                  new                  result
=====================  ===================  ===============================
Insert                 Insert               fatal: double insert
Insert                 Update(_, b)         Insert(b)
Insert                 Delete               dropped (no net action)
Update                 Insert               fatal: inserting a live event
Update(a, _)           Update(_, b)         Update(a, b)
Update(a, _)           Delete               Delete(a)
Delete(a)              Insert(b)            Update(a, b)
Delete                 Update               fatal: updating a deleted event
Delete                 Delete               fatal: double delete
=====================  ===================  ===============================

Whatever the intermediate steps, the stored action describes the event as
it was before the operation and as it is after it.  An ``Update(a, a)``
produced by folding is kept: it is a valid, reversible no-op, and dropping
it would lose the fact that the event was touched.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator

from tapedeck.core.errors import InvariantViolation
from tapedeck.models.diffs import DeleteAction, EventAction, InsertAction, UpdateAction


def _fold(prior: EventAction, new: EventAction) -> EventAction | None:
    """Combine two actions on the same event id. ``None`` means "no net change"."""
    event_id = new.event_id
    if isinstance(prior, InsertAction):
        if isinstance(new, InsertAction):
            raise InvariantViolation(f"double insert of event {event_id}", event_id)
        if isinstance(new, UpdateAction):
            return InsertAction(event=new.after)
        return None
    if isinstance(prior, UpdateAction):
        if isinstance(new, InsertAction):
            raise InvariantViolation(f"inserting live event {event_id}", event_id)
        if isinstance(new, UpdateAction):
            return UpdateAction(before=prior.before, after=new.after)
        return DeleteAction(event=prior.before)
    # prior is a DeleteAction
    if isinstance(new, InsertAction):
        return UpdateAction(before=prior.event, after=new.event)
    if isinstance(new, UpdateAction):
        raise InvariantViolation(f"updating deleted event {event_id}", event_id)
    raise InvariantViolation(f"double delete of event {event_id}", event_id)


class Changeset:
    """Mapping of event id to its single net :data:`EventAction`."""

    def __init__(self, actions: Iterable[EventAction] = ()) -> None:
        self._changes: dict[int, EventAction] = {}
        self.add_all(actions)

    def add(self, action: EventAction) -> None:
        event_id = action.event_id
        prior = self._changes.get(event_id)
        if prior is None:
            self._changes[event_id] = action
            return
        folded = _fold(prior, action)
        if folded is None:
            del self._changes[event_id]
        else:
            self._changes[event_id] = folded

    def add_all(self, actions: Iterable[EventAction]) -> None:
        for action in actions:
            self.add(action)

    def merge(self, other: Changeset) -> None:
        """Fold every action of *other* (which happened after this one) into self."""
        self.add_all(other.actions())

    def revert(self) -> Changeset:
        """Return the changeset that undoes this one on the already patched track."""
        reverted = Changeset()
        for action in reversed(self.actions()):
            reverted.add(action.revert())
        return reverted

    def actions(self) -> list[EventAction]:
        """Actions in event id order, so serialized output is reproducible."""
        return [self._changes[event_id] for event_id in sorted(self._changes)]

    def get(self, event_id: int) -> EventAction | None:
        return self._changes.get(event_id)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._changes

    def __iter__(self) -> Iterator[EventAction]:
        return iter(self.actions())

    def __len__(self) -> int:
        return len(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Changeset):
            return NotImplemented
        return self._changes == other._changes

    def __repr__(self) -> str:
        return f"Changeset({self.actions()!r})"
