"""tapedeck export OUT — write the current version as a MIDI file."""
from __future__ import annotations

import pathlib

import typer

from tapedeck.cli._project import fail, require_project
from tapedeck.cli.errors import ExitCode
from tapedeck.services.smf import SmfError

app = typer.Typer()


@app.callback(invoke_without_command=True)
def export(
    ctx: typer.Context,
    out: pathlib.Path = typer.Argument(..., help="Destination .mid file."),
) -> None:
    """Export the track at its current version."""
    project = require_project()
    try:
        count = project.save_to(out)
    except SmfError as exc:
        fail(f"❌ {exc}", ExitCode.INTERNAL_ERROR)
    typer.echo(f"✅ Wrote {count} messages to {out} (version {project.history.version})")
