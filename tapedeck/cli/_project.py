"""Project lookup shared by every command that works on an existing project.

Every failure path echoes to stdout and raises ``typer.Exit`` with the
matching :class:`~tapedeck.cli.errors.ExitCode`, so commands stay free of
error plumbing and ``CliRunner`` sees the message in ``result.output``.
"""
from __future__ import annotations

import logging
from typing import NoReturn

import typer

from tapedeck.cli.errors import ExitCode
from tapedeck.core.errors import IncompatibleProjectError, TapedeckError
from tapedeck.services.project import Project, find_project_root, open_project

logger = logging.getLogger(__name__)


def fail(message: str, code: ExitCode) -> NoReturn:
    typer.echo(message)
    raise typer.Exit(code=code)


def internal_error(what: str, exc: Exception) -> NoReturn:
    """Report a failure that leaves the project unusable and exit 3."""
    logger.error("❌ %s: %s", what, exc, exc_info=True)
    fail(f"❌ {what}: {exc}", ExitCode.INTERNAL_ERROR)


def require_project() -> Project:
    """Open the project containing the working directory, or exit."""
    root = find_project_root()
    if root is None:
        fail("Not a tapedeck project. Run `tapedeck init SOURCE`.", ExitCode.PROJECT_NOT_FOUND)
    try:
        return open_project(root)
    except IncompatibleProjectError as exc:
        fail(f"❌ {exc}", ExitCode.USER_ERROR)
    except TapedeckError as exc:
        internal_error(f"Cannot open project {root}", exc)
