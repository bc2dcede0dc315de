"""Single-handle event loop timer.

Owns at most one ``loop.call_later`` handle. Re-arming or cancelling bumps
a generation counter, so a callback that was already queued when the
timer was replaced does nothing.
"""

from __future__ import annotations

import asyncio
from typing import Callable


class LoopTimer:
    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self, delay_seconds: float) -> None:
        self.cancel()
        generation = self._generation
        self._handle = asyncio.get_running_loop().call_later(
            max(delay_seconds, 0.0), self._fire, generation,
        )

    def cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self._callback()
