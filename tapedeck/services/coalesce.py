"""Command coalescing for the history manager.

Holding a key down (nudge right, transpose up) fires the same command many
times a second.  Writing one history version per repeat floods the version
chain, so repeats of the same command that arrive within a short window are
folded into the version the first one created.

The coalescer only decides *whether* to fold; the history manager does the
merge (see :meth:`tapedeck.services.history.TrackHistory.apply`).  Any
navigation (undo, redo, goto) resets it, so a fold never reaches into a
version that is not the newest one.
"""
from __future__ import annotations

import time
from collections.abc import Callable
from typing import Optional


class CommandCoalescer:
    """Time-windowed accumulator keyed by command identity.

    Args:
        window_ms: Maximum gap between two commands that still merge.
                   ``0`` disables coalescing.
        clock:     Monotonic seconds source; injectable for tests.
    """

    def __init__(
        self, window_ms: int = 0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.window_ms = max(window_ms, 0)
        self._clock = clock
        self._last_key: Optional[str] = None
        self._last_at = 0.0

    @property
    def enabled(self) -> bool:
        return self.window_ms > 0

    def should_merge(self, key: str) -> bool:
        """True when *key* repeats the previous command within the window."""
        if not self.enabled or self._last_key != key:
            return False
        elapsed_ms = (self._clock() - self._last_at) * 1000.0
        return elapsed_ms <= self.window_ms

    def record(self, key: str) -> None:
        """Note that *key* was just committed."""
        self._last_key = key
        self._last_at = self._clock()

    def reset(self) -> None:
        self._last_key = None
