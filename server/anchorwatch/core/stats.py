"""Watch statistics and feed liveness tracking.

Tracks in-memory counters and whether position fixes are still arriving.
No framework dependencies.
"""

from __future__ import annotations

import threading
import time


class WatchStats:
    """Thread-safe anchor watch statistics.

    The feed is considered "live" if a position fix arrived within
    ``stale_after_seconds`` (default 10s).
    """

    def __init__(self, stale_after_seconds: float = 10.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._stale_after = stale_after_seconds
        self._last_fix: float | None = None  # time.monotonic() timestamp

        # Counters
        self.positions_received: int = 0
        self.positions_unknown: int = 0
        self.settings_updates: int = 0
        self.feed_errors: int = 0
        self.alarms_raised: int = 0
        self.alarms_acknowledged: int = 0
        self.check_ins_requested: int = 0
        self.check_ins_acknowledged: int = 0
        self.check_ins_missed: int = 0
        self.commands_confirmed: int = 0
        self.commands_failed: int = 0
        self.alert_errors: int = 0

    def record_position(self, *, known: bool) -> None:
        """Record a fix from the feed; unknown fixes don't refresh liveness."""
        with self._lock:
            self.positions_received += 1
            if known:
                self._last_fix = time.monotonic()
            else:
                self.positions_unknown += 1

    def record_settings_update(self) -> None:
        with self._lock:
            self.settings_updates += 1

    def record_feed_error(self) -> None:
        with self._lock:
            self.feed_errors += 1

    def record_alarm(self) -> None:
        with self._lock:
            self.alarms_raised += 1

    def record_alarm_acknowledged(self) -> None:
        with self._lock:
            self.alarms_acknowledged += 1

    def record_check_in_requested(self) -> None:
        with self._lock:
            self.check_ins_requested += 1

    def record_check_in_acknowledged(self) -> None:
        with self._lock:
            self.check_ins_acknowledged += 1

    def record_check_in_missed(self) -> None:
        with self._lock:
            self.check_ins_missed += 1

    def record_command(self, *, ok: bool) -> None:
        with self._lock:
            if ok:
                self.commands_confirmed += 1
            else:
                self.commands_failed += 1

    def record_alert_error(self) -> None:
        with self._lock:
            self.alert_errors += 1

    def _fix_age(self, now: float) -> float | None:
        """Seconds since the last known fix. Caller holds lock."""
        if self._last_fix is None:
            return None
        return now - self._last_fix

    def feed_live(self) -> bool:
        with self._lock:
            age = self._fix_age(time.monotonic())
            return age is not None and age <= self._stale_after

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            age = self._fix_age(now_mono)
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "positions_received": self.positions_received,
                "positions_unknown": self.positions_unknown,
                "settings_updates": self.settings_updates,
                "feed_errors": self.feed_errors,
                "alarms_raised": self.alarms_raised,
                "alarms_acknowledged": self.alarms_acknowledged,
                "check_ins_requested": self.check_ins_requested,
                "check_ins_acknowledged": self.check_ins_acknowledged,
                "check_ins_missed": self.check_ins_missed,
                "commands_confirmed": self.commands_confirmed,
                "commands_failed": self.commands_failed,
                "alert_errors": self.alert_errors,
                "feed": {
                    "live": age is not None and age <= self._stale_after,
                    "last_fix_age_seconds": round(age, 1) if age is not None else None,
                    "stale_after_seconds": self._stale_after,
                },
            }
