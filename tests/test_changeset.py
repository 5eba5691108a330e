"""Tests for the changeset merge table and reversal."""
from __future__ import annotations

import itertools

import pytest

from tapedeck.core.changeset import Changeset
from tapedeck.core.errors import InvariantViolation
from tapedeck.core.track import Track
from tapedeck.models.diffs import DeleteAction, EventAction, InsertAction, UpdateAction
from tapedeck.models.events import Event, note_event

A = note_event(7, 100, 60, 64, 200)
B = A.moved(50)
C = A.moved(120)


# ---------------------------------------------------------------------------
# Merge table
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "prior, new, expected",
    [
        (InsertAction(event=A), UpdateAction(before=A, after=B), InsertAction(event=B)),
        (InsertAction(event=A), DeleteAction(event=A), None),
        (UpdateAction(before=A, after=B), UpdateAction(before=B, after=C), UpdateAction(before=A, after=C)),
        (UpdateAction(before=A, after=B), DeleteAction(event=B), DeleteAction(event=A)),
        (DeleteAction(event=A), InsertAction(event=B), UpdateAction(before=A, after=B)),
    ],
    ids=[
        "insert-update",
        "insert-delete",
        "update-update",
        "update-delete",
        "delete-insert",
    ],
)
def test_merge_table_valid_cells(
    prior: EventAction, new: EventAction, expected: EventAction | None
) -> None:
    cs = Changeset([prior])
    cs.add(new)
    if expected is None:
        assert len(cs) == 0
        assert not cs
        assert 7 not in cs
    else:
        assert cs.get(7) == expected
        assert len(cs) == 1


@pytest.mark.parametrize(
    "prior, new",
    [
        (InsertAction(event=A), InsertAction(event=A)),
        (UpdateAction(before=A, after=B), InsertAction(event=B)),
        (DeleteAction(event=A), UpdateAction(before=A, after=B)),
        (DeleteAction(event=A), DeleteAction(event=A)),
    ],
    ids=["insert-insert", "update-insert", "delete-update", "delete-delete"],
)
def test_merge_table_fatal_cells(prior: EventAction, new: EventAction) -> None:
    cs = Changeset([prior])
    with pytest.raises(InvariantViolation) as excinfo:
        cs.add(new)
    assert excinfo.value.event_id == 7


def test_update_back_to_original_is_kept() -> None:
    """Folding to Update(a, a) keeps the entry; it still reverts cleanly."""
    cs = Changeset([UpdateAction(before=A, after=B), UpdateAction(before=B, after=A)])
    assert cs.get(7) == UpdateAction(before=A, after=A)


def test_delete_then_insert_same_value_is_identity_update() -> None:
    cs = Changeset([DeleteAction(event=A), InsertAction(event=A)])
    assert cs.actions() == [UpdateAction(before=A, after=A)]


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


def test_interleaved_ids_fold_independently() -> None:
    """Actions on different ids can interleave in any order; the result is the same."""
    other = note_event(9, 0, 40, 50, 10)
    per_id = {
        7: [InsertAction(event=A), UpdateAction(before=A, after=B)],
        9: [DeleteAction(event=other), InsertAction(event=other.moved(5))],
    }
    results = []
    for first in (7, 9):
        second = 9 if first == 7 else 7
        for split in range(3):
            seq = per_id[first][:split] + per_id[second] + per_id[first][split:]
            results.append(Changeset(seq))
    assert all(r == results[0] for r in results)
    assert results[0].actions() == [
        InsertAction(event=B),
        UpdateAction(before=other, after=other.moved(5)),
    ]


def test_actions_are_ordered_by_event_id() -> None:
    events = [note_event(i, 0, 60, 64, 1) for i in (5, 1, 3)]
    cs = Changeset(InsertAction(event=e) for e in events)
    assert [a.event_id for a in cs.actions()] == [1, 3, 5]


def test_merge_folds_later_changeset() -> None:
    first = Changeset([InsertAction(event=A)])
    second = Changeset([UpdateAction(before=A, after=C)])
    first.merge(second)
    assert first.actions() == [InsertAction(event=C)]


# ---------------------------------------------------------------------------
# Reversal against a track
# ---------------------------------------------------------------------------


def _track_with(*events: Event) -> Track:
    return Track(events)


def test_revert_restores_track_exactly() -> None:
    kept = note_event(1, 0, 50, 60, 100)
    doomed = note_event(2, 10, 52, 60, 100)
    moved = note_event(3, 20, 54, 60, 100)
    track = _track_with(kept, doomed, moved)
    before = track.events

    cs = Changeset(
        [
            DeleteAction(event=doomed),
            UpdateAction(before=moved, after=moved.moved(500)),
            InsertAction(event=note_event(4, 5, 70, 70, 10)),
        ]
    )
    track.patch(cs)
    assert [e.id for e in track.events] == [1, 4, 3]

    track.patch(cs.revert())
    assert track.events == before


@pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
def test_patch_is_order_independent(order: tuple[int, ...]) -> None:
    """The track ends up sorted whatever order the actions were recorded in."""
    base = [note_event(i, i * 10, 60, 64, 5) for i in range(3)]
    actions = [
        UpdateAction(before=base[0], after=base[0].moved(25)),
        DeleteAction(event=base[1]),
        InsertAction(event=note_event(9, 15, 61, 64, 5)),
    ]
    track = Track(base)
    track.patch(Changeset(actions[i] for i in order))
    assert [(e.id, e.at) for e in track.events] == [(9, 15), (2, 20), (0, 25)]
