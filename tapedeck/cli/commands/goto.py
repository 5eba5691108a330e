"""tapedeck goto VERSION — undo or redo until the track is at VERSION.

Exit codes
----------
0  success
1  VERSION is outside the stored chain
3  a record on the way is missing or unreadable
"""
from __future__ import annotations

import typer

from tapedeck.cli._project import fail, internal_error, require_project
from tapedeck.cli.errors import ExitCode
from tapedeck.core.errors import TapedeckError

app = typer.Typer()


@app.callback(invoke_without_command=True)
def goto(
    ctx: typer.Context,
    version: int = typer.Argument(..., help="Target version (0 is the import)."),
) -> None:
    """Move to VERSION."""
    history = require_project().history
    if not 0 <= version <= history.last_version:
        fail(
            f"❌ Version {version} does not exist (0..{history.last_version}).",
            ExitCode.USER_ERROR,
        )
    try:
        reached = history.go_to_version(version)
    except TapedeckError as exc:
        internal_error(f"Cannot move to version {version}", exc)
    if not reached:
        fail(
            f"❌ Stopped at version {history.version}: the history is incomplete.",
            ExitCode.INTERNAL_ERROR,
        )
    typer.echo(f"✅ At version {history.version}")
