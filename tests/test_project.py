"""Tests for project directories: create, open, discover, export."""
from __future__ import annotations

import pathlib
import tomllib

import pytest

from tapedeck.core.errors import (
    HistoryNotEmptyError,
    IncompatibleProjectError,
    ProjectNotFoundError,
)
from tapedeck.services.edit_commands import TimeRange, add_note
from tapedeck.services.project import (
    PROJECT_FORMAT_ID,
    find_project_root,
    init_project,
    open_project,
)
from tapedeck.services.smf import load_events


def test_init_project_layout(midi_file: pathlib.Path) -> None:
    root = init_project(midi_file)
    assert root == midi_file.parent / "song.tapedeck"
    assert (root / "history" / "0.snapshot").is_file()
    with (root / "project.toml").open("rb") as fh:
        data = tomllib.load(fh)
    assert data["project"]["format_id"] == PROJECT_FORMAT_ID
    assert data["project"]["title"] == "song"
    assert data["project"]["source_file"] == str(midi_file.resolve())


def test_init_project_respects_suffix_setting(
    midi_file: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    from tapedeck.config import get_settings

    monkeypatch.setenv("TAPEDECK_PROJECT_SUFFIX", "deck")
    get_settings.cache_clear()
    assert init_project(midi_file).name == "song.deck"


def test_init_project_twice_refused(midi_file: pathlib.Path) -> None:
    init_project(midi_file)
    with pytest.raises(HistoryNotEmptyError):
        init_project(midi_file)


def test_open_project_resumes_history(midi_file: pathlib.Path, tmp_path: pathlib.Path) -> None:
    root = init_project(midi_file, tmp_path / "work")
    project = open_project(root)
    assert project.title == "song"
    assert len(project.history.events()) == 5
    project.history.apply(add_note(project.history.id_seq, TimeRange(0, 1000), 40))

    again = open_project(root)
    assert again.history.version == 1
    assert len(again.history.events()) == 6


def test_open_project_rejects_unknown_format(midi_file: pathlib.Path) -> None:
    root = init_project(midi_file)
    toml_path = root / "project.toml"
    toml_path.write_text(toml_path.read_text().replace("format_id = 1", "format_id = 99"))
    with pytest.raises(IncompatibleProjectError):
        open_project(root)


def test_open_missing_project(tmp_path: pathlib.Path) -> None:
    with pytest.raises(ProjectNotFoundError):
        open_project(tmp_path)


def test_find_project_root_walks_up(midi_file: pathlib.Path) -> None:
    root = init_project(midi_file)
    nested = root / "history"
    assert find_project_root(nested) == root.resolve()
    assert find_project_root(midi_file.parent) is None


def test_find_project_root_env_override(
    midi_file: pathlib.Path, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = init_project(midi_file)
    monkeypatch.setenv("TAPEDECK_PROJECT_ROOT", str(root))
    assert find_project_root(tmp_path) == root.resolve()
    monkeypatch.setenv("TAPEDECK_PROJECT_ROOT", str(tmp_path))
    assert find_project_root(root) is None


def test_save_to_exports_current_version(midi_file: pathlib.Path, tmp_path: pathlib.Path) -> None:
    project = open_project(init_project(midi_file))
    project.history.apply(add_note(project.history.id_seq, TimeRange(0, 500_000), 40))
    out = tmp_path / "export.mid"
    project.save_to(out)
    pitches = sorted(e.note.pitch for e in load_events(out) if e.note)
    assert pitches == [40, 60, 64]
