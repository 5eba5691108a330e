"""Exit-code contract for the tapedeck CLI."""
from __future__ import annotations

import enum


class ExitCode(enum.IntEnum):
    """Standardised CLI exit codes.

    0 — success
    1 — user error (bad arguments, refused command, incompatible project)
    2 — project not found
    3 — internal error (corrupted history, I/O failure)
    """

    SUCCESS = 0
    USER_ERROR = 1
    PROJECT_NOT_FOUND = 2
    INTERNAL_ERROR = 3
