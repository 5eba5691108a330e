"""tapedeck CLI — Typer application root.

Entry point for the ``tapedeck`` console script.  Each top-level command
lives in its own module under ``tapedeck.cli.commands``; the edit commands
share one ``edit`` sub-application.
"""
from __future__ import annotations

import logging

import typer

from tapedeck.cli.commands import edit, export, goto, init, log, redo, status, undo
from tapedeck.config import get_settings

cli = typer.Typer(
    name="tapedeck",
    help="tapedeck — reversible event editing with persistent undo history.",
    no_args_is_help=True,
)


@cli.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Configure logging before any command runs."""
    cfg = get_settings()
    if verbose or cfg.debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


cli.add_typer(init.app, name="init", help="Import a MIDI file as a new project.")
cli.add_typer(status.app, name="status", help="Show the current version and track size.")
cli.add_typer(log.app, name="log", help="List every stored version.")
cli.add_typer(undo.app, name="undo", help="Step one version back.")
cli.add_typer(redo.app, name="redo", help="Step one version forward.")
cli.add_typer(goto.app, name="goto", help="Move to a given version.")
cli.add_typer(export.app, name="export", help="Write the current version as a MIDI file.")
cli.add_typer(edit.app, name="edit", help="Edit the track; each edit is a new version.")


if __name__ == "__main__":
    cli()
