"""tapedeck edit — one subcommand per edit command.

Each subcommand computes its diff against the current version, applies it
and stores it as the next version.  Editing after an undo discards the
versions that could have been redone.

Times are integer microseconds; ranges are ``--start``/``--end`` with
``end`` exclusive.  Selection edits take the event ids to touch as repeated
``--id`` options.

Exit codes
----------
0  edit applied
1  edit refused (nothing to change, unsafe tail shift, duplicate bookmark…)
2  not inside a project
3  the history rejected the edit or could not be written
"""
from __future__ import annotations

import logging
from typing import Optional

import typer

from tapedeck.cli._project import fail, internal_error, require_project
from tapedeck.cli.errors import ExitCode
from tapedeck.contracts.midi_types import MAX_LEVEL
from tapedeck.core.errors import TapedeckError
from tapedeck.models.events import MIDI_CC_SUSTAIN_ID
from tapedeck.services import edit_commands as cmd
from tapedeck.services.edit_commands import AppliedCommand, TimeRange
from tapedeck.services.history import TrackHistory

logger = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True)

_START = typer.Option(..., "--start", help="Range start (µs).")
_END = typer.Option(..., "--end", help="Range end, exclusive (µs).")
_AT = typer.Option(..., "--at", help="Time (µs).")
_IDS = typer.Option(..., "--id", help="Selected event id; repeat for several.")


def _commit(history: TrackHistory, name: str, command: Optional[AppliedCommand]) -> None:
    try:
        applied = history.apply(command)
    except TapedeckError as exc:
        internal_error(f"{name} failed", exc)
    if not applied:
        fail(f"⚠️ {name}: nothing to change.", ExitCode.USER_ERROR)
    typer.echo(f"✅ {name} → version {history.version}")


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


@app.command("tape-insert")
def tape_insert(start: int = _START, end: int = _END) -> None:
    """Open a gap [START, END) and push everything after it later."""
    history = require_project().history
    _commit(history, "tape-insert", cmd.tape_insert(history.track, TimeRange(start, end)))


@app.command("tape-delete")
def tape_delete(start: int = _START, end: int = _END) -> None:
    """Cut [START, END) out of the timeline and close the gap."""
    history = require_project().history
    _commit(history, "tape-delete", cmd.tape_delete(history.track, TimeRange(start, end)))


@app.command("shift-tail")
def shift_tail(
    at: int = _AT,
    delta: int = typer.Option(..., "--delta", help="Signed shift (µs)."),
) -> None:
    """Move every event at or after AT by DELTA."""
    history = require_project().history
    _commit(history, "shift-tail", cmd.shift_tail(history.track, at, delta))


# ---------------------------------------------------------------------------
# New events
# ---------------------------------------------------------------------------


@app.command("add-note")
def add_note(
    start: int = _START,
    end: int = _END,
    pitch: int = typer.Option(..., "--pitch", help="MIDI pitch (piano range 21..108)."),
    velocity: int = typer.Option(MAX_LEVEL // 2, "--velocity", help="0..127."),
) -> None:
    """Add a note covering [START, END)."""
    history = require_project().history
    command = cmd.add_note(history.id_seq, TimeRange(start, end), pitch, velocity)
    _commit(history, "add-note", command)


@app.command("damper")
def damper(
    start: int = _START,
    end: int = _END,
    on: bool = typer.Option(True, "--on/--off", help="Pedal state over the range."),
    controller: int = typer.Option(
        MIDI_CC_SUSTAIN_ID, "--cc", help="Switch controller number (default: sustain)."
    ),
) -> None:
    """Hold the damper pedal down (or up) from START to END."""
    history = require_project().history
    command = cmd.set_damper(
        history.id_seq, history.track, TimeRange(start, end), on, controller
    )
    _commit(history, "damper", command)


@app.command("bookmark-set")
def bookmark_set(at: int = _AT) -> None:
    """Put a bookmark at AT."""
    history = require_project().history
    _commit(history, "bookmark-set", cmd.set_bookmark(history.id_seq, history.track, at))


@app.command("bookmark-clear")
def bookmark_clear(at: int = _AT) -> None:
    """Remove the bookmark at AT."""
    history = require_project().history
    _commit(history, "bookmark-clear", cmd.clear_bookmark(history.track, at))


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


@app.command("delete")
def delete(ids: list[int] = _IDS) -> None:
    """Delete the selected events."""
    history = require_project().history
    _commit(history, "delete", cmd.delete_selected(history.track, ids))


@app.command("shift")
def shift(
    ids: list[int] = _IDS,
    delta: int = typer.Option(..., "--delta", help="Signed shift (µs)."),
) -> None:
    """Move the selected events by DELTA."""
    history = require_project().history
    _commit(history, "shift", cmd.shift_selected(history.track, ids, delta))


@app.command("stretch")
def stretch(
    ids: list[int] = _IDS,
    delta: int = typer.Option(..., "--delta", help="Signed duration change (µs)."),
) -> None:
    """Lengthen (or shorten) the selected notes."""
    history = require_project().history
    _commit(history, "stretch", cmd.stretch_selected_notes(history.track, ids, delta))


@app.command("transpose")
def transpose(
    ids: list[int] = _IDS,
    semitones: int = typer.Option(..., "--semitones", help="Signed pitch change."),
) -> None:
    """Transpose the selected notes; notes leaving the piano range stay put."""
    history = require_project().history
    _commit(history, "transpose", cmd.transpose_selected_notes(history.track, ids, semitones))


@app.command("accent")
def accent(
    ids: list[int] = _IDS,
    delta: int = typer.Option(..., "--delta", help="Signed velocity change."),
) -> None:
    """Change the velocity of the selected notes."""
    history = require_project().history
    _commit(history, "accent", cmd.accent_selected_notes(history.track, ids, delta))
