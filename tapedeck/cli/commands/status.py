"""tapedeck status — where the project stands in its history."""
from __future__ import annotations

import typer

from tapedeck.cli._project import require_project

app = typer.Typer()


@app.callback(invoke_without_command=True)
def status(ctx: typer.Context) -> None:
    """Show the project title, current version and track size."""
    project = require_project()
    history = project.history
    typer.echo(f"Project: {project.title}")
    typer.echo(f"Version: {history.version} of {history.last_version}")
    typer.echo(f"Events:  {len(history.events())}")
    if history.can_redo:
        typer.echo(f"{history.last_version - history.version} version(s) can be redone.")
