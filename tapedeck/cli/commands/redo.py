"""tapedeck redo — step one version forward."""
from __future__ import annotations

import typer

from tapedeck.cli._project import fail, internal_error, require_project
from tapedeck.cli.errors import ExitCode
from tapedeck.core.errors import TapedeckError

app = typer.Typer()


@app.callback(invoke_without_command=True)
def redo(ctx: typer.Context) -> None:
    """Replay the next stored version."""
    history = require_project().history
    try:
        moved = history.redo()
    except TapedeckError as exc:
        internal_error("Redo failed", exc)
    if not moved:
        fail("⚠️ Nothing to redo.", ExitCode.USER_ERROR)
    typer.echo(f"✅ At version {history.version}")
