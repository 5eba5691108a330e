"""Tests for the command coalescing window."""
from __future__ import annotations

from tapedeck.services.coalesce import CommandCoalescer


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_disabled_by_default() -> None:
    c = CommandCoalescer()
    c.record("notes_transpose")
    assert not c.enabled
    assert not c.should_merge("notes_transpose")


def test_same_key_inside_window_merges() -> None:
    clock = FakeClock()
    c = CommandCoalescer(250, clock=clock)
    c.record("notes_transpose")
    clock.now += 0.2
    assert c.should_merge("notes_transpose")


def test_window_expiry_and_other_keys() -> None:
    clock = FakeClock()
    c = CommandCoalescer(250, clock=clock)
    c.record("notes_transpose")
    assert not c.should_merge("notes_accent")
    clock.now += 0.3
    assert not c.should_merge("notes_transpose")


def test_reset_forgets_last_command() -> None:
    c = CommandCoalescer(250, clock=FakeClock())
    c.record("events_shift")
    c.reset()
    assert not c.should_merge("events_shift")
