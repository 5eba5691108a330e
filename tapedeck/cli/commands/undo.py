"""tapedeck undo — step one version back."""
from __future__ import annotations

import typer

from tapedeck.cli._project import fail, internal_error, require_project
from tapedeck.cli.errors import ExitCode
from tapedeck.core.errors import TapedeckError

app = typer.Typer()


@app.callback(invoke_without_command=True)
def undo(ctx: typer.Context) -> None:
    """Revert the current version."""
    history = require_project().history
    try:
        moved = history.undo()
    except TapedeckError as exc:
        internal_error("Undo failed", exc)
    if not moved:
        fail("⚠️ Nothing to undo.", ExitCode.USER_ERROR)
    typer.echo(f"✅ At version {history.version}")
