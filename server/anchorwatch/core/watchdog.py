"""Check-in watchdog: periodic crew acknowledgement with a grace period.

Phases::

    idle ──start──▶ interval ──elapsed──▶ awaiting ──grace elapsed──▶ timed_out
                      ▲                     │                           │
                      └──── acknowledge ────┴───────────────────────────┘

The watchdog owns at most one timer handle. Every transition cancels the
current handle before arming the next one, and a handle that fires after
being superseded (or after stop) does nothing.
"""

from __future__ import annotations

import asyncio
import enum
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from anchorwatch.core.models import CheckInConfig

log = structlog.get_logger()


class CheckInPhase(enum.Enum):
    IDLE = "idle"
    INTERVAL = "interval"
    AWAITING = "awaiting"
    TIMED_OUT = "timed_out"


class CheckInWatchdog:
    """Drives the check-in cycle on the running event loop."""

    def __init__(
        self,
        config: CheckInConfig,
        on_required: Callable[[], None],
        on_missed: Callable[[], None],
    ) -> None:
        self._config = config
        self._on_required = on_required
        self._on_missed = on_missed
        self._phase = CheckInPhase.IDLE
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0
        self._deadline: datetime | None = None

    @property
    def config(self) -> CheckInConfig:
        return self._config

    @property
    def phase(self) -> CheckInPhase:
        return self._phase

    @property
    def awaiting(self) -> bool:
        return self._phase in (CheckInPhase.AWAITING, CheckInPhase.TIMED_OUT)

    @property
    def missed(self) -> bool:
        return self._phase == CheckInPhase.TIMED_OUT

    @property
    def deadline(self) -> datetime | None:
        return self._deadline

    @property
    def timer_pending(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        """Begin the cycle (watch activated). No-op while disabled."""
        if not self._config.enabled:
            self.stop()
            return
        self._arm_interval()

    def stop(self) -> None:
        """Cancel everything and go idle."""
        self._cancel()
        self._phase = CheckInPhase.IDLE
        self._deadline = None

    def acknowledge(self) -> bool:
        """Crew confirmed they are watching. Returns False if nothing was due."""
        if not self.awaiting:
            return False
        log.info("check_in_acknowledged", late=self.missed)
        self._arm_interval()
        return True

    def configure(self, config: CheckInConfig, *, watch_active: bool) -> None:
        """Apply a new configuration, re-arming from now when it changes."""
        previous = self._config
        self._config = config
        if not config.enabled:
            if self._phase != CheckInPhase.IDLE:
                log.info("check_in_disabled")
            self.stop()
        elif watch_active and (self._phase == CheckInPhase.IDLE or config.interval != previous.interval):
            if not self.awaiting:
                self._arm_interval()

    # --- Internals ---

    def _cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self, delay: timedelta, callback: Callable[[], None]) -> None:
        self._cancel()
        generation = self._generation
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(
            max(delay.total_seconds(), 0.0), self._fire, generation, callback,
        )

    def _fire(self, generation: int, callback: Callable[[], None]) -> None:
        if generation != self._generation:
            return
        self._handle = None
        callback()

    def _arm_interval(self) -> None:
        self._phase = CheckInPhase.INTERVAL
        self._deadline = None
        self._arm(self._config.interval, self._interval_elapsed)

    def _interval_elapsed(self) -> None:
        self._phase = CheckInPhase.AWAITING
        self._deadline = datetime.now(timezone.utc) + self._config.grace_period
        self._arm(self._config.grace_period, self._grace_elapsed)
        log.info("check_in_required", deadline=self._deadline.isoformat())
        self._on_required()

    def _grace_elapsed(self) -> None:
        self._phase = CheckInPhase.TIMED_OUT
        log.warning("check_in_missed",
                    grace_seconds=self._config.grace_period.total_seconds())
        self._on_missed()
