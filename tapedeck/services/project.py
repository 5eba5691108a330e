"""Project directories — one imported source file and its edit history.

Layout::

    <name>.tapedeck/
        project.toml     [project] format_id, title, source_file
        history/         TrackHistory records

``project.toml`` is written once by :func:`init_project`.  A project whose
``format_id`` differs from :data:`PROJECT_FORMAT_ID` is refused on open.

Project discovery (:func:`find_project_root`) walks up from the working
directory looking for ``project.toml``.  ``TAPEDECK_PROJECT_ROOT``
overrides the walk entirely.
"""
from __future__ import annotations

import logging
import os
import pathlib
import tomllib
from dataclasses import dataclass

from tapedeck.config import get_settings
from tapedeck.core.errors import (
    HistoryNotEmptyError,
    IncompatibleProjectError,
    ProjectNotFoundError,
)
from tapedeck.services.history import TrackHistory
from tapedeck.services.smf import load_events, save_events

logger = logging.getLogger(__name__)

PROJECT_FORMAT_ID = 1
PROJECT_FILE = "project.toml"
HISTORY_DIR = "history"
PROJECT_ROOT_ENV = "TAPEDECK_PROJECT_ROOT"


def _dump_toml(data: dict[str, dict[str, object]]) -> str:
    """Serialize single-level tables of scalar values to TOML text."""
    lines: list[str] = []
    for heading, table in data.items():
        lines.append(f"[{heading}]")
        for key, val in table.items():
            if isinstance(val, str):
                escaped = val.replace("\\", "\\\\").replace('"', '\\"')
                lines.append(f'{key} = "{escaped}"')
            else:
                lines.append(f"{key} = {val!r}")
        lines.append("")
    return "\n".join(lines)


@dataclass
class Project:
    """An opened project.

    Attributes:
        root:        The ``<name>.tapedeck`` directory.
        title:       Display title (the source file stem by default).
        source_file: File the project was imported from, as recorded.
        history:     The opened track history.
    """

    root: pathlib.Path
    title: str
    source_file: str
    history: TrackHistory

    def save_to(self, path: pathlib.Path) -> int:
        """Export the current version as a MIDI file. Returns the message count."""
        return save_events(self.history.events(), path)


def default_project_dir(source_file: pathlib.Path) -> pathlib.Path:
    suffix = get_settings().project_suffix
    return source_file.parent / f"{source_file.stem}.{suffix}"


def init_project(
    source_file: pathlib.Path, directory: pathlib.Path | None = None
) -> pathlib.Path:
    """Create a project next to (or at *directory* for) *source_file*.

    Raises:
        HistoryNotEmptyError: the directory already holds a project.
        SmfError: *source_file* is not a readable MIDI file.
    """
    root = directory or default_project_dir(source_file)
    if (root / PROJECT_FILE).exists():
        raise HistoryNotEmptyError(f"A project already exists in {root}.")

    events = load_events(source_file)

    history_dir = root / HISTORY_DIR
    history_dir.mkdir(parents=True, exist_ok=True)
    TrackHistory.with_directory(history_dir).init(events)

    config = {
        "project": {
            "format_id": PROJECT_FORMAT_ID,
            "title": source_file.stem,
            "source_file": str(source_file.resolve()),
        }
    }
    (root / PROJECT_FILE).write_text(_dump_toml(config), encoding="utf-8")
    logger.info("✅ Project created at %s from %s (%d events)", root, source_file, len(events))
    return root


def _read_project_table(root: pathlib.Path) -> dict[str, object]:
    path = root / PROJECT_FILE
    if not path.is_file():
        raise ProjectNotFoundError(f"No {PROJECT_FILE} in {root}.")
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise IncompatibleProjectError(f"Cannot parse {path}: {exc}") from exc
    table = data.get("project")
    if not isinstance(table, dict):
        raise IncompatibleProjectError(f"{path} has no [project] table.")
    return table


def open_project(root: pathlib.Path) -> Project:
    """Open the project in *root* at its saved version.

    Raises:
        ProjectNotFoundError: *root* has no ``project.toml``.
        IncompatibleProjectError: unknown ``format_id``.
        HistoryCorruptedError: the history cannot be replayed.
    """
    table = _read_project_table(root)
    format_id = table.get("format_id")
    if format_id != PROJECT_FORMAT_ID:
        logger.error("❌ %s has format_id %r, expected %d", root, format_id, PROJECT_FORMAT_ID)
        raise IncompatibleProjectError(
            f"Project format {format_id!r} is not supported (expected {PROJECT_FORMAT_ID})."
        )
    history = TrackHistory.with_directory(root / HISTORY_DIR).open()
    return Project(
        root=root,
        title=str(table.get("title", root.stem)),
        source_file=str(table.get("source_file", "")),
        history=history,
    )


def find_project_root(start: pathlib.Path | None = None) -> pathlib.Path | None:
    """Walk up from *start* (default ``Path.cwd()``) looking for ``project.toml``.

    Returns ``None`` when no ancestor holds one.  ``TAPEDECK_PROJECT_ROOT``
    replaces the walk; it must point at the project directory itself.
    """
    if env_root := os.environ.get(PROJECT_ROOT_ENV):
        p = pathlib.Path(env_root).resolve()
        logger.debug("⚠️ %s override active: %s", PROJECT_ROOT_ENV, p)
        return p if (p / PROJECT_FILE).is_file() else None

    current = (start or pathlib.Path.cwd()).resolve()
    while True:
        if (current / PROJECT_FILE).is_file():
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent
