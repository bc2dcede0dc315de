"""Alarm state machine: maps drift and check-in status to an alarm level.

Cut points, as a percentage of the alarm radius:

- ``>= warn_pct`` (80%) → warn
- ``>= alarm_pct`` (100%) → alarm
- alarm sustained for ``emergency_after`` → emergency
- alarm while a check-in is missed → emergency

Falling back a level requires the percentage to drop ``hysteresis_pct``
below that level's threshold, so a boat sitting on the line doesn't flap.
A missed check-in forces at least alarm regardless of distance.

Acknowledging silences the current episode only. The level itself keeps
following the distance.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from anchorwatch.core.models import AlarmLevel, AlarmThresholds

MSG_APPROACHING = "Vessel approaching alarm radius ({pct:.0f}%)"
MSG_DRIFTED = "Vessel has drifted beyond alarm radius"
MSG_SUSTAINED = "Vessel outside alarm radius for over {seconds:.0f}s"
MSG_CHECK_IN_MISSED = "Check-in missed! Please confirm anchor watch."
MSG_DRIFT_AND_CHECK_IN = "Vessel outside alarm radius and check-in missed"


@dataclass(frozen=True)
class AlarmDecision:
    """Outcome of one evaluation."""

    level: AlarmLevel
    previous: AlarmLevel
    message: str | None
    silenced: bool
    rearmed: bool = False

    @property
    def escalated(self) -> bool:
        return self.level > self.previous

    @property
    def sound(self) -> bool:
        """Whether the alarm sound should be playing after this evaluation."""
        return self.level.is_alarming and not self.silenced


class AlarmStateMachine:
    """Tracks the alarm level of one anchor watch."""

    def __init__(self, thresholds: AlarmThresholds | None = None) -> None:
        self.thresholds = thresholds or AlarmThresholds()
        self.reset()

    def reset(self) -> None:
        self._level = AlarmLevel.NORMAL
        self._distance_level = AlarmLevel.NORMAL
        self._outside_since: float | None = None
        self._silenced = False
        self._ack_level = AlarmLevel.NORMAL
        self._ack_radius: float | None = None

    @property
    def level(self) -> AlarmLevel:
        return self._level

    @property
    def silenced(self) -> bool:
        return self._silenced

    def emergency_due_in(self, now: float | None = None) -> float | None:
        """Seconds until sustained drift becomes an emergency.

        None unless the boat is outside the radius and not yet in emergency.
        """
        if self._outside_since is None or self._level >= AlarmLevel.EMERGENCY:
            return None
        now = time.monotonic() if now is None else now
        elapsed = now - self._outside_since
        return max(self.thresholds.emergency_after.total_seconds() - elapsed, 0.0)

    def distance_level(self, percentage: float | None) -> AlarmLevel:
        """Level implied by distance alone, with hysteresis on the way down."""
        if percentage is None:
            return self._distance_level
        t = self.thresholds
        current = self._distance_level
        if percentage >= t.alarm_pct:
            return AlarmLevel.ALARM
        if current >= AlarmLevel.ALARM and percentage >= t.alarm_pct - t.hysteresis_pct:
            return AlarmLevel.ALARM
        if percentage >= t.warn_pct:
            return AlarmLevel.WARN
        if current >= AlarmLevel.WARN and percentage >= t.warn_pct - t.hysteresis_pct:
            return AlarmLevel.WARN
        return AlarmLevel.NORMAL

    def evaluate(
        self,
        current_radius: float | None,
        max_radius: float | None,
        *,
        check_in_missed: bool = False,
        now: float | None = None,
    ) -> AlarmDecision:
        """Re-evaluate the level. ``now`` is a time.monotonic() value."""
        now = time.monotonic() if now is None else now
        previous = self._level

        if not max_radius:
            # No radius configured: no distance alarms at all.
            distance = AlarmLevel.NORMAL
            percentage = None
        elif current_radius is None:
            # Position lost; hold the last distance level rather than clearing it.
            distance = self._distance_level
            percentage = None
        else:
            percentage = current_radius / max_radius * 100
            distance = self.distance_level(percentage)
        self._distance_level = distance

        if distance >= AlarmLevel.ALARM:
            if self._outside_since is None:
                self._outside_since = now
        else:
            self._outside_since = None

        level, message = self._resolve(distance, percentage, check_in_missed, now)
        self._level = level

        rearmed = False
        if level == AlarmLevel.NORMAL:
            # Episode over; the next one starts loud.
            self._silenced = False
            self._ack_radius = None
        elif self._silenced and self._should_rearm(level, current_radius):
            self._silenced = False
            rearmed = True

        return AlarmDecision(
            level=level,
            previous=previous,
            message=message,
            silenced=self._silenced,
            rearmed=rearmed,
        )

    def _resolve(
        self,
        distance: AlarmLevel,
        percentage: float | None,
        check_in_missed: bool,
        now: float,
    ) -> tuple[AlarmLevel, str | None]:
        emergency_after = self.thresholds.emergency_after.total_seconds()
        if distance >= AlarmLevel.ALARM:
            if check_in_missed:
                return AlarmLevel.EMERGENCY, MSG_DRIFT_AND_CHECK_IN
            if self._outside_since is not None and now - self._outside_since >= emergency_after:
                return AlarmLevel.EMERGENCY, MSG_SUSTAINED.format(seconds=emergency_after)
            return AlarmLevel.ALARM, MSG_DRIFTED
        if check_in_missed:
            return AlarmLevel.ALARM, MSG_CHECK_IN_MISSED
        if distance == AlarmLevel.WARN:
            pct = percentage if percentage is not None else self.thresholds.warn_pct
            return AlarmLevel.WARN, MSG_APPROACHING.format(pct=pct)
        return AlarmLevel.NORMAL, None

    def _should_rearm(self, level: AlarmLevel, current_radius: float | None) -> bool:
        if level > self._ack_level:
            return True
        if current_radius is None or self._ack_radius is None:
            return False
        return current_radius >= self._ack_radius + self.thresholds.rearm_distance_m

    def acknowledge(self, current_radius: float | None) -> bool:
        """Silence the current episode. Returns False if nothing is sounding."""
        if not self._level.is_warning:
            return False
        self._silenced = True
        self._ack_level = self._level
        self._ack_radius = current_radius
        return True
