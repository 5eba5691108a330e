"""Tests for the ``tapedeck`` command line.

Every test runs inside ``tmp_path``: ``init`` is invoked from there and the
remaining commands use the ``TAPEDECK_PROJECT_ROOT`` override, or ``chdir``
into the project where discovery itself is under test.
"""
from __future__ import annotations

import os
import pathlib

import pytest
from typer.testing import CliRunner, Result

from tapedeck.cli.app import cli
from tapedeck.cli.errors import ExitCode
from tapedeck.services.project import open_project

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_cmd(cwd: pathlib.Path, *args: str) -> Result:
    """``chdir`` into *cwd* and invoke the CLI with *args*."""
    prev = os.getcwd()
    try:
        os.chdir(cwd)
        return runner.invoke(cli, list(args))
    finally:
        os.chdir(prev)


@pytest.fixture
def project(
    midi_file: pathlib.Path, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> pathlib.Path:
    result = _run_cmd(tmp_path, "init", str(midi_file))
    assert result.exit_code == 0, result.output
    root = tmp_path / "song.tapedeck"
    monkeypatch.setenv("TAPEDECK_PROJECT_ROOT", str(root))
    return root


def _run(root: pathlib.Path, *args: str) -> Result:
    return _run_cmd(root, *args)


# ---------------------------------------------------------------------------
# init / status / log
# ---------------------------------------------------------------------------


def test_no_args_shows_help(tmp_path: pathlib.Path) -> None:
    result = _run_cmd(tmp_path)
    assert "init" in result.output
    assert "edit" in result.output


def test_init_creates_project(project: pathlib.Path) -> None:
    assert (project / "project.toml").is_file()
    assert (project / "history" / "0.snapshot").is_file()


def test_init_twice_is_user_error(project: pathlib.Path, midi_file: pathlib.Path) -> None:
    result = _run_cmd(midi_file.parent, "init", str(midi_file))
    assert result.exit_code == ExitCode.USER_ERROR
    assert "already exists" in result.output


def test_init_missing_source(tmp_path: pathlib.Path) -> None:
    result = _run_cmd(tmp_path, "init", "nope.mid")
    assert result.exit_code == ExitCode.USER_ERROR


def test_status_outside_project(tmp_path: pathlib.Path) -> None:
    result = _run_cmd(tmp_path, "status")
    assert result.exit_code == ExitCode.PROJECT_NOT_FOUND
    assert "Not a tapedeck project" in result.output


def test_status_found_by_walking_up(
    project: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("TAPEDECK_PROJECT_ROOT")
    result = _run_cmd(project / "history", "status")
    assert result.exit_code == 0, result.output
    assert "Version: 0 of 0" in result.output
    assert "Events:  5" in result.output


def test_log_lists_versions(project: pathlib.Path) -> None:
    _run(project, "edit", "add-note", "--start", "0", "--end", "1000", "--pitch", "48")
    _run(project, "edit", "bookmark-set", "--at", "250")
    result = _run(project, "log")
    assert result.exit_code == 0, result.output
    lines = [line for line in result.output.splitlines() if line[:1] in ("*", " ")]
    assert lines[0].startswith("*")
    assert "set_bookmark" in lines[0]
    assert "add_note" in lines[1]
    assert "init" in lines[2]


# ---------------------------------------------------------------------------
# Edits and navigation
# ---------------------------------------------------------------------------


def test_edit_creates_versions_and_undo_redo(project: pathlib.Path) -> None:
    result = _run(project, "edit", "tape-insert", "--start", "0", "--end", "1000")
    assert result.exit_code == 0, result.output
    assert "version 1" in result.output

    result = _run(project, "edit", "transpose", "--id", "1", "--id", "2", "--semitones", "3")
    assert result.exit_code == 0, result.output

    assert _run(project, "undo").exit_code == 0
    assert open_project(project).history.version == 1
    assert _run(project, "redo").exit_code == 0
    assert open_project(project).history.version == 2
    assert _run(project, "redo").exit_code == ExitCode.USER_ERROR


def test_refused_edit_exits_user_error(project: pathlib.Path) -> None:
    result = _run(project, "edit", "bookmark-clear", "--at", "12345")
    assert result.exit_code == ExitCode.USER_ERROR
    assert "nothing to change" in result.output
    assert open_project(project).history.version == 0


def test_undo_at_start_is_user_error(project: pathlib.Path) -> None:
    result = _run(project, "undo")
    assert result.exit_code == ExitCode.USER_ERROR


def test_goto_and_discard(project: pathlib.Path) -> None:
    _run(project, "edit", "damper", "--start", "2000000", "--end", "3000000", "--on")
    _run(project, "edit", "shift-tail", "--at", "0", "--delta", "100")
    _run(project, "edit", "accent", "--id", "1", "--delta=-10")

    result = _run(project, "goto", "1")
    assert result.exit_code == 0, result.output
    assert open_project(project).history.version == 1

    result = _run(project, "goto", "7")
    assert result.exit_code == ExitCode.USER_ERROR

    _run(project, "edit", "stretch", "--id", "1", "--delta", "1000")
    history = open_project(project).history
    assert (history.version, history.last_version) == (2, 2)


def test_selection_edits(project: pathlib.Path) -> None:
    events = open_project(project).history.events()
    note_ids = [str(e.id) for e in events if e.note]
    args = [a for nid in note_ids for a in ("--id", nid)]

    assert _run(project, "edit", "shift", *args, "--delta", "500").exit_code == 0
    assert _run(project, "edit", "delete", *args).exit_code == 0
    remaining = open_project(project).history.events()
    assert not [e for e in remaining if e.note]


def test_export_writes_midi(project: pathlib.Path, tmp_path: pathlib.Path) -> None:
    out = tmp_path / "out.mid"
    result = _run(project, "export", str(out))
    assert result.exit_code == 0, result.output
    assert out.is_file()
