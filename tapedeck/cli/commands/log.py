"""tapedeck log — list every stored version, oldest first.

    * 2  notes_transpose   1 step, 3 actions
      1  add_note          1 step, 1 action
      0  init

The current version is marked with ``*``.  Versions above it are redo
targets and disappear on the next edit.
"""
from __future__ import annotations

import typer

from tapedeck.cli._project import internal_error, require_project
from tapedeck.core.errors import TapedeckError

app = typer.Typer()


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


@app.callback(invoke_without_command=True)
def log(ctx: typer.Context) -> None:
    """Print the version chain, newest first."""
    project = require_project()
    try:
        entries = project.history.log()
    except TapedeckError as exc:
        internal_error("Cannot read history", exc)
    for entry in reversed(entries):
        marker = "*" if entry.is_current else " "
        line = f"{marker} {entry.version:>3}  {entry.command:<17}"
        if entry.version:
            line += f" {_plural(entry.steps, 'step')}, {_plural(entry.actions, 'action')}"
        typer.echo(line.rstrip())
