"""
Injected time source. All docwatch timestamps are epoch milliseconds.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class ManualClock:
    """A clock that only moves when told to. Used by tests and dry runs."""

    def __init__(self, start_ms: int = 0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> int:
        self.now_ms += ms
        return self.now_ms

    def set(self, ms: int) -> None:
        self.now_ms = ms
