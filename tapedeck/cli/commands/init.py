"""tapedeck init — import a MIDI file as a new project.

Creates ``<stem>.tapedeck/`` next to SOURCE (or at ``--dir``)::

    <stem>.tapedeck/
        project.toml     format id, title, source file
        history/         0.snapshot + meta

The imported events become version 0.  An existing project in the target
directory is never overwritten.

Exit codes
----------
0  success
1  project already exists, or SOURCE is not a readable MIDI file
3  the history directory cannot be written
"""
from __future__ import annotations

import logging
import pathlib
from typing import Optional

import typer

from tapedeck.cli._project import fail, internal_error
from tapedeck.cli.errors import ExitCode
from tapedeck.core.errors import HistoryNotEmptyError, TapedeckError
from tapedeck.services.project import init_project
from tapedeck.services.smf import SmfError

logger = logging.getLogger(__name__)

app = typer.Typer()


@app.callback(invoke_without_command=True)
def init(
    ctx: typer.Context,
    source: pathlib.Path = typer.Argument(..., help="MIDI file to import."),
    directory: Optional[pathlib.Path] = typer.Option(
        None,
        "--dir",
        help="Project directory (default: <stem>.tapedeck next to SOURCE).",
    ),
) -> None:
    """Import SOURCE as version 0 of a new project."""
    if not source.is_file():
        fail(f"❌ {source} is not a file.", ExitCode.USER_ERROR)
    try:
        root = init_project(source, directory)
    except (HistoryNotEmptyError, SmfError) as exc:
        fail(f"❌ {exc}", ExitCode.USER_ERROR)
    except TapedeckError as exc:
        internal_error("tapedeck init failed", exc)
    typer.echo(f"✅ Initialised project in {root}")
