"""Shared Pydantic base for persisted records."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RecordModel(BaseModel):
    """Base model for everything written to or read from the history directory.

    - Frozen: records are values, they are replaced, never mutated.
    - ``extra="forbid"``: an unknown field in a record on disk is a format
      error, not something to silently carry along.
    - Field names are the on-disk names (``base_version``, ``next_id``);
      no alias generator, so ``model_dump()`` and the JSON files agree.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
