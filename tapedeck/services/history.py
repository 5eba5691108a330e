"""Track History — persistent, linear undo/redo for one track.

Versions form a single chain.  Version 0 is a full snapshot of the
imported track; every version N > 0 is a :class:`~tapedeck.models.records.Patch`
from N-1 to N holding the steps of the command that produced it.  Moving
between versions replays (redo) or reverts (undo) those steps on the live
track, one version at a time.

On-disk layout (one directory per track)::

    0.snapshot
    <N>.snapshot     checkpoint, only when checkpointing is enabled
    <N>.changeset
    meta

``meta`` is rewritten after every move and is the only index of what is
stored: the directory is never listed.

Edits made after an undo drop the abandoned future first
(:meth:`TrackHistory.discard_tail`).  History never branches.

Every mutating call holds one re-entrant lock and finishes its disk writes
before returning.  Readers use :meth:`TrackHistory.events`, which hands out
the track's current immutable snapshot without locking.

Boundary rules:
  - No Typer imports.
  - Commands are computed by the caller (``edit_commands``); this module
    only resolves, applies, persists and navigates.
"""
from __future__ import annotations

import logging
import os
import pathlib
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional, TypeVar

from pydantic import ValidationError

from tapedeck.config import get_settings
from tapedeck.core.changeset import Changeset
from tapedeck.core.errors import (
    HistoryCorruptedError,
    HistoryDirectoryError,
    HistoryNotEmptyError,
    MissingRecordError,
)
from tapedeck.core.id_seq import IdSeq
from tapedeck.core.track import Track
from tapedeck.models.base import RecordModel
from tapedeck.models.diffs import ChangeList, CommandDiff
from tapedeck.models.events import Event
from tapedeck.models.records import HISTORY_FORMAT_VERSION, HistoryMeta, Patch, Snapshot
from tapedeck.services.coalesce import CommandCoalescer
from tapedeck.services.edit_commands import AppliedCommand, apply_diffs, revert_diffs

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".snapshot"
PATCH_SUFFIX = ".changeset"
META_NAME = "meta"
INIT_COMMAND = "init"

_R = TypeVar("_R", bound=RecordModel)


@dataclass(frozen=True)
class VersionEntry:
    """One line of ``tapedeck log``.

    Attributes:
        version:    Version number (0 is the imported baseline).
        command:    Command that produced it (``init`` for version 0).
        steps:      Number of stored diff steps.
        actions:    Number of concrete event actions in those steps
                    (tail shifts count as one).
        is_current: Whether the track is at this version now.
    """

    version: int
    command: str
    steps: int
    actions: int
    is_current: bool


def _merge_steps(prior: list[CommandDiff], new: list[CommandDiff]) -> list[CommandDiff]:
    """Append *new* to *prior*, folding neighbouring change lists together."""
    merged: list[CommandDiff] = []
    for step in [*prior, *new]:
        last = merged[-1] if merged else None
        if isinstance(step, ChangeList) and isinstance(last, ChangeList):
            combined = Changeset(last.actions)
            combined.merge(Changeset(step.actions))
            merged.pop()
            if combined:
                merged.append(ChangeList(actions=combined.actions()))
        else:
            merged.append(step)
    return merged


def _count_actions(steps: Iterable[CommandDiff]) -> int:
    return sum(len(step.actions) if isinstance(step, ChangeList) else 1 for step in steps)


class TrackHistory:
    """Version chain of one track, persisted in *directory*.

    Use :meth:`with_directory`, then either :meth:`init` (new project) or
    :meth:`open` (existing project).

    Args:
        directory:           Existing, writable history directory.
        checkpoint_interval: Write ``<N>.snapshot`` every N versions.
                             ``None`` reads ``TAPEDECK_CHECKPOINT_INTERVAL``.
        coalescer:           Decides when repeated commands share a version.
                             Defaults to one built from ``TAPEDECK_COALESCE_WINDOW_MS``.
    """

    def __init__(
        self,
        directory: pathlib.Path,
        *,
        checkpoint_interval: Optional[int] = None,
        coalescer: Optional[CommandCoalescer] = None,
    ) -> None:
        cfg = get_settings()
        self.directory = directory
        self.track = Track()
        self.id_seq = IdSeq()
        self.checkpoint_interval = (
            cfg.checkpoint_interval if checkpoint_interval is None else max(checkpoint_interval, 0)
        )
        self.coalescer = coalescer or CommandCoalescer(cfg.coalesce_window_ms)
        self._version = 0
        self._last_version = 0
        self._checkpoints: list[int] = [0]
        self._lock = threading.RLock()

    @classmethod
    def with_directory(
        cls,
        directory: pathlib.Path,
        *,
        checkpoint_interval: Optional[int] = None,
        coalescer: Optional[CommandCoalescer] = None,
    ) -> TrackHistory:
        """Bind a history to *directory* after checking it can hold one."""
        if not directory.exists():
            raise HistoryDirectoryError(f"Cannot use history: {directory} is not found.")
        if not directory.is_dir():
            raise HistoryDirectoryError(f"Cannot use history: {directory} is not a directory.")
        if not os.access(directory, os.W_OK):
            raise HistoryDirectoryError(f"Cannot use history: {directory} is not writable.")
        logger.debug("History directory %s", directory)
        return cls(directory, checkpoint_interval=checkpoint_interval, coalescer=coalescer)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    @property
    def last_version(self) -> int:
        return self._last_version

    @property
    def can_undo(self) -> bool:
        return self._version > 0

    @property
    def can_redo(self) -> bool:
        return self._version < self._last_version

    def events(self) -> tuple[Event, ...]:
        """Point-in-time event list for export and playback."""
        return self.track.events

    def is_empty(self) -> bool:
        return not (
            self._snapshot_path(0).exists() or (self.directory / META_NAME).exists()
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def init(self, events: Iterable[Event]) -> TrackHistory:
        """Import *events* as version 0 of an empty history."""
        with self._lock:
            if not self.is_empty():
                raise HistoryNotEmptyError(
                    f"Cannot init: the history in {self.directory} is not empty."
                )
            self.track.reset(events)
            for ev in self.track.events:
                self.id_seq.advance_past(ev.id)
            self._version = 0
            self._last_version = 0
            self._checkpoints = [0]
            self._write_snapshot(0)
            self._write_meta()
            logger.info(
                "✅ History initialised in %s with %d events", self.directory, len(self.track)
            )
            return self

    def open(self) -> TrackHistory:
        """Restore the track at the version saved in ``meta``.

        Raises:
            MissingRecordError: ``meta`` or a record it lists is absent.
            HistoryCorruptedError: a record is unreadable or does not chain.
        """
        with self._lock:
            meta = self._read_record(self.directory / META_NAME, HistoryMeta)
            if meta.format != HISTORY_FORMAT_VERSION:
                raise HistoryCorruptedError(
                    f"Unsupported history format {meta.format} in {self.directory}"
                )
            if not 0 <= meta.current_version <= meta.last_version:
                raise HistoryCorruptedError(
                    f"current version {meta.current_version} outside 0..{meta.last_version}"
                )
            self.id_seq = IdSeq(meta.next_id)
            self._last_version = meta.last_version
            self._checkpoints = sorted(set(meta.checkpoints) | {0})

            base = max(c for c in self._checkpoints if c <= meta.current_version)
            snapshot = self._read_record(self._snapshot_path(base), Snapshot)
            if snapshot.version != base:
                raise HistoryCorruptedError(
                    f"{self._snapshot_path(base).name} holds version {snapshot.version}"
                )
            self.track.reset(snapshot.events)
            self._version = base
            for ev in self.track.events:
                self.id_seq.advance_past(ev.id)

            while self._version < meta.current_version:
                self._step_forward()
            logger.info(
                "✅ Opened history %s at version %d/%d (%d events)",
                self.directory,
                self._version,
                self._last_version,
                len(self.track),
            )
            return self

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def apply(self, command: Optional[AppliedCommand]) -> bool:
        """Apply *command* to the track and store it as a new version.

        Returns ``False`` when *command* is ``None`` (refused) or changes
        nothing; no version is written in that case.  A repeat of the
        previous command inside the coalescing window is folded into the
        newest version instead of creating another one.
        """
        if command is None:
            return False
        command_id, diffs = command
        key = command_id.value
        with self._lock:
            steps = apply_diffs(self.track, diffs)
            if not steps:
                logger.debug("Command %s changed nothing", key)
                return False

            fold = (
                self._version > 0
                and self._version == self._last_version
                and self.coalescer.should_merge(key)
            )
            version = self._version
            prior: Optional[Patch] = None
            try:
                if fold:
                    prior = self._read_patch(version)
                    self._fold_into_current(key, prior, steps)
                else:
                    if self._last_version > self._version:
                        self.discard_tail()
                    self._append(key, steps)
                self._write_meta()
            except (HistoryDirectoryError, HistoryCorruptedError):
                self._roll_back(version, steps, prior)
                raise
            self.coalescer.record(key)
            return True

    def _roll_back(self, version: int, steps: list[CommandDiff], prior: Optional[Patch]) -> None:
        """Return the track and the version pointers to *version* after a failed write.

        Anything above *version* is treated as gone: a half-written record
        there is overwritten by the next edit.  A failed fold also puts the
        unfolded record for *version* (and its checkpoint) back.
        """
        revert_diffs(self.track, steps)
        self._version = version
        self._last_version = version
        self._checkpoints = [c for c in self._checkpoints if c <= version]
        self.coalescer.reset()
        if prior is not None:
            self._write_record(self._patch_path(version), prior)
            if version in self._checkpoints:
                self._write_snapshot(version)
        logger.error("❌ Edit rolled back; history stays at version %d", version)

    def _append(self, key: str, steps: list[CommandDiff]) -> None:
        version = self._version + 1
        patch = Patch(base_version=self._version, version=version, command=key, changes=steps)
        self._write_record(self._patch_path(version), patch)
        self._version = version
        self._last_version = version
        if self.checkpoint_interval and version % self.checkpoint_interval == 0:
            self._write_snapshot(version)
            self._checkpoints.append(version)
            logger.debug("Checkpoint written at version %d", version)
        logger.debug("Version %d: %s (%d steps)", version, key, len(steps))

    def _fold_into_current(self, key: str, prior: Patch, steps: list[CommandDiff]) -> None:
        patch = prior.model_copy(update={"changes": _merge_steps(prior.changes, steps)})
        self._write_record(self._patch_path(self._version), patch)
        if self._version in self._checkpoints:
            self._write_snapshot(self._version)
        logger.debug("Folded %s into version %d", key, self._version)

    def discard_tail(self) -> None:
        """Delete every stored version after the current one."""
        with self._lock:
            if self._last_version <= self._version:
                return
            dropped = self._last_version - self._version
            try:
                for version in range(self._version + 1, self._last_version + 1):
                    self._patch_path(version).unlink(missing_ok=True)
                for version in [c for c in self._checkpoints if c > self._version]:
                    self._snapshot_path(version).unlink(missing_ok=True)
            except OSError as exc:
                raise HistoryDirectoryError(f"Cannot drop redo versions: {exc}") from exc
            self._checkpoints = [c for c in self._checkpoints if c <= self._version]
            self._last_version = self._version
            self._write_meta()
            logger.info("⚠️ Discarded %d redo versions after version %d", dropped, self._version)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        with self._lock:
            if not self.can_undo:
                return False
            self.coalescer.reset()
            self._step_back()
            self._write_meta()
            return True

    def redo(self) -> bool:
        with self._lock:
            if not self.can_redo:
                return False
            self.coalescer.reset()
            self._step_forward()
            self._write_meta()
            return True

    def go_to_version(self, target: int) -> bool:
        """Undo or redo until the track is at *target*.

        Returns ``False`` if *target* is outside the stored chain or a
        record on the way is missing; the track then stays at the version
        where navigation stopped.
        """
        with self._lock:
            if not 0 <= target <= self._last_version:
                return False
            self.coalescer.reset()
            try:
                while self._version < target:
                    self._step_forward()
                while self._version > target:
                    self._step_back()
            except MissingRecordError as exc:
                logger.error("❌ go_to_version(%d) stopped at %d: %s", target, self._version, exc)
                return False
            finally:
                self._write_meta()
            return self._version == target

    def _step_forward(self) -> None:
        patch = self._read_patch(self._version + 1)
        if patch.base_version != self._version:
            raise HistoryCorruptedError(
                f"patch {patch.version} is based on {patch.base_version}, "
                f"track is at {self._version}"
            )
        apply_diffs(self.track, patch.changes)
        self._version = patch.version

    def _step_back(self) -> None:
        patch = self._read_patch(self._version)
        if patch.version != self._version:
            raise HistoryCorruptedError(
                f"{self._patch_path(self._version).name} holds version {patch.version}"
            )
        revert_diffs(self.track, patch.changes)
        self._version = patch.base_version

    def log(self) -> list[VersionEntry]:
        """Every stored version, oldest first."""
        with self._lock:
            entries = [
                VersionEntry(
                    version=0,
                    command=INIT_COMMAND,
                    steps=0,
                    actions=0,
                    is_current=self._version == 0,
                )
            ]
            for version in range(1, self._last_version + 1):
                patch = self._read_patch(version)
                entries.append(
                    VersionEntry(
                        version=version,
                        command=patch.command,
                        steps=len(patch.changes),
                        actions=_count_actions(patch.changes),
                        is_current=self._version == version,
                    )
                )
            return entries

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _snapshot_path(self, version: int) -> pathlib.Path:
        return self.directory / f"{version}{SNAPSHOT_SUFFIX}"

    def _patch_path(self, version: int) -> pathlib.Path:
        return self.directory / f"{version}{PATCH_SUFFIX}"

    def _read_patch(self, version: int) -> Patch:
        patch = self._read_record(self._patch_path(version), Patch)
        if patch.version != version:
            raise HistoryCorruptedError(
                f"{self._patch_path(version).name} holds version {patch.version}"
            )
        return patch

    def _write_snapshot(self, version: int) -> None:
        snapshot = Snapshot(version=version, events=list(self.track.events))
        self._write_record(self._snapshot_path(version), snapshot)

    def _write_meta(self) -> None:
        meta = HistoryMeta(
            next_id=self.id_seq.peek(),
            current_version=self._version,
            last_version=self._last_version,
            checkpoints=list(self._checkpoints),
        )
        self._write_record(self.directory / META_NAME, meta)

    @staticmethod
    def _read_record(path: pathlib.Path, model: type[_R]) -> _R:
        if not path.is_file():
            raise MissingRecordError(f"History record {path} is missing.")
        try:
            return model.model_validate_json(path.read_bytes())
        except ValidationError as exc:
            raise HistoryCorruptedError(f"Cannot read history record {path}: {exc}") from exc

    @staticmethod
    def _write_record(path: pathlib.Path, record: RecordModel) -> None:
        """Write *record* next to *path* and rename it into place."""
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_text(record.model_dump_json(), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            logger.error("❌ Failed to write %s: %s", path, exc)
            raise HistoryDirectoryError(f"Cannot write history record {path}: {exc}") from exc

    def __repr__(self) -> str:
        return (
            f"TrackHistory({str(self.directory)!r}, version={self._version}, "
            f"last_version={self._last_version})"
        )
