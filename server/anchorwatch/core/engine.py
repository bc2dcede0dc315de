"""Anchor watch engine: position tracking, alarms, check-ins and commands.

This is the core business logic. It depends on the TelemetryFeed,
TelemetryWriter and Alerter protocols, not concrete implementations.

Everything runs on one event loop: feed events are consumed by
``run_feed_consumer``; check-in, emergency escalation and sound repeat
timers fire through ``loop.call_later``; commands are coroutines. State is
never mutated in place; each change builds a new AnchorState, publishes it
and keeps it as the current one.

Commands update local state optimistically and mark themselves pending
until the upstream write finishes. A failed write rolls back the fields
the command changed, unless something else changed them meanwhile or the
watch ended, and is reported to the caller as ``(False, error)``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import math
from collections import deque
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Awaitable, Callable, Coroutine

import structlog

from anchorwatch.core import geo
from anchorwatch.core.alarm import AlarmDecision, AlarmStateMachine
from anchorwatch.core.broadcast import StateChannel
from anchorwatch.core.models import (
    ALARM_SOUNDS,
    DEFAULT_ALARM_SOUND,
    AlarmLevel,
    AlarmThresholds,
    AnchorState,
    CheckInConfig,
    Position,
    PositionUpdate,
    SensorUpdate,
    SettingsUpdate,
    TrackPoint,
)
from anchorwatch.core.timer import LoopTimer
from anchorwatch.core.watchdog import CheckInWatchdog
from anchorwatch.telemetry.base import TelemetryError

if TYPE_CHECKING:
    from anchorwatch.alerts.base import Alerter
    from anchorwatch.core.models import FeedEvent
    from anchorwatch.core.stats import WatchStats
    from anchorwatch.feed.base import TelemetryFeed
    from anchorwatch.telemetry.base import TelemetryWriter

log = structlog.get_logger()

ALARM_TITLE = "Anchor Alarm"
CHECK_IN_TITLE = "Anchor Watch Check-In"
DEFAULT_CHECK_IN_MESSAGE = "Please confirm you are monitoring the anchor."

# Fields that only exist while a watch is set.
_WATCH_FIELDS = (
    "is_active", "anchor_position", "max_radius", "current_radius",
    "radius_percentage", "bearing_degrees", "apparent_bearing", "rode_length",
    "distance_from_bow",
)

CommandResult = tuple[bool, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def derive(state: AnchorState) -> AnchorState:
    """Recompute distance, bearing and percentage from the stored positions."""
    anchor, vessel = state.anchor_position, state.vessel_position
    if anchor is None or vessel is None:
        return dataclasses.replace(
            state, current_radius=None, radius_percentage=None,
            bearing_degrees=None, apparent_bearing=None,
        )

    distance = geo.haversine_m(vessel.latitude, vessel.longitude,
                               anchor.latitude, anchor.longitude)
    bearing = geo.initial_bearing_deg(vessel.latitude, vessel.longitude,
                                      anchor.latitude, anchor.longitude)
    apparent = None
    if state.vessel_heading is not None:
        apparent = geo.relative_bearing_deg(bearing, state.vessel_heading)
    percentage = None
    if state.max_radius:
        # Not clamped: values over 100 must reach the alarm logic.
        percentage = distance / state.max_radius * 100
    return dataclasses.replace(
        state, current_radius=distance, radius_percentage=percentage,
        bearing_degrees=bearing, apparent_bearing=apparent,
    )


class AnchorWatchEngine:
    """Owns the AnchorState of one anchor watch."""

    def __init__(
        self,
        feed: TelemetryFeed,
        writer: TelemetryWriter,
        alerter: Alerter,
        stats: WatchStats,
        *,
        thresholds: AlarmThresholds | None = None,
        check_in: CheckInConfig | None = None,
        alarm_sound: str = DEFAULT_ALARM_SOUND,
        sound_repeat_seconds: float = 5.0,
        max_track_points: int = 2_000,
        channel: StateChannel | None = None,
    ) -> None:
        self._feed = feed
        self._writer = writer
        self._alerter = alerter
        self._stats = stats
        self._alarm = AlarmStateMachine(thresholds)
        self._watchdog = CheckInWatchdog(
            check_in or CheckInConfig(),
            on_required=self._on_check_in_required,
            on_missed=self._on_check_in_missed,
        )
        self._alarm_sound = alarm_sound if alarm_sound in ALARM_SOUNDS else DEFAULT_ALARM_SOUND
        self._channel = channel or StateChannel()
        self._track: deque[TrackPoint] = deque(maxlen=max_track_points)
        self._state = AnchorState()
        self._sound_playing = False
        self._sound_repeat = sound_repeat_seconds
        self._repeat_timer = LoopTimer(self._repeat_sound)
        self._emergency_timer = LoopTimer(self._on_emergency_due)
        # Bumped whenever a watch ends, so late rollbacks can tell.
        self._watch_id = 0
        self._alert_tasks: set[asyncio.Task] = set()
        self._closed = False

    # --- Observation ---

    @property
    def state(self) -> AnchorState:
        return self._state

    @property
    def track_history(self) -> tuple[TrackPoint, ...]:
        return tuple(self._track)

    @property
    def check_in_config(self) -> CheckInConfig:
        return self._watchdog.config

    @property
    def watchdog(self) -> CheckInWatchdog:
        return self._watchdog

    @property
    def thresholds(self) -> AlarmThresholds:
        return self._alarm.thresholds

    @property
    def alarm_sound(self) -> str:
        return self._alarm_sound

    @property
    def sound_playing(self) -> bool:
        return self._sound_playing

    def subscribe(self) -> asyncio.Queue[AnchorState]:
        return self._channel.subscribe()

    def unsubscribe(self, queue: asyncio.Queue[AnchorState]) -> None:
        self._channel.unsubscribe(queue)

    # --- State transitions ---

    def _commit(self, **changes) -> AnchorState:
        """Apply changes, re-derive, re-evaluate alarms and publish."""
        if self._closed:
            return self._state
        previous = self._state
        state = derive(dataclasses.replace(previous, **changes))

        if state.is_active:
            decision = self._alarm.evaluate(
                state.current_radius, state.max_radius,
                check_in_missed=self._watchdog.missed,
            )
        else:
            self._alarm.reset()
            decision = AlarmDecision(
                level=AlarmLevel.NORMAL, previous=previous.alarm_state,
                message=None, silenced=False,
            )

        state = dataclasses.replace(
            state,
            alarm_state=decision.level,
            alarm_message=decision.message,
            alarm_silenced=decision.silenced,
            awaiting_check_in=self._watchdog.awaiting,
            check_in_deadline=self._watchdog.deadline,
            check_in_missed=self._watchdog.missed,
            updated_at=_now(),
        )
        self._state = state
        self._schedule_emergency()
        self._dispatch_alerts(decision)
        self._channel.publish(state)
        return state

    def _schedule_emergency(self) -> None:
        """Escalate sustained drift on time even if no new fix arrives."""
        due = self._alarm.emergency_due_in() if self._state.is_active else None
        if due is None:
            self._emergency_timer.cancel()
        elif not self._emergency_timer.pending:
            self._emergency_timer.arm(due)

    def _on_emergency_due(self) -> None:
        if self._state.is_active:
            self._commit()

    def _dispatch_alerts(self, decision: AlarmDecision) -> None:
        if decision.level != decision.previous:
            log.info("alarm_state_changed",
                     previous=decision.previous.label,
                     level=decision.level.label,
                     message=decision.message)

        if decision.escalated and decision.level.is_warning:
            if decision.level.is_alarming and not decision.previous.is_alarming:
                self._stats.record_alarm()
            self._spawn(self._alerter.notify(ALARM_TITLE, decision.message or ALARM_TITLE))

        if decision.sound and (not self._sound_playing or decision.escalated or decision.rearmed):
            self._sound_playing = True
            self._spawn(self._alerter.start_sound(
                self._alarm_sound, decision.level, decision.message or ALARM_TITLE,
            ))
            if self._sound_repeat > 0:
                self._repeat_timer.arm(self._sound_repeat)
        elif not decision.sound and self._sound_playing:
            self._sound_playing = False
            self._repeat_timer.cancel()
            self._spawn(self._alerter.stop_sound())

    def _repeat_sound(self) -> None:
        """Play the alarm again while it is still sounding."""
        if self._closed or not self._sound_playing:
            return
        state = self._state
        self._spawn(self._alerter.start_sound(
            self._alarm_sound, state.alarm_state, state.alarm_message or ALARM_TITLE,
        ))
        self._repeat_timer.arm(self._sound_repeat)

    def _spawn(self, coro: Coroutine) -> None:
        """Run an alerter call in the background; failures are logged."""
        task = asyncio.get_running_loop().create_task(self._guard_alert(coro))
        self._alert_tasks.add(task)
        task.add_done_callback(self._alert_tasks.discard)

    async def _guard_alert(self, coro: Awaitable[None]) -> None:
        try:
            await coro
        except Exception:
            self._stats.record_alert_error()
            log.error("alert_failed", exc_info=True)

    async def flush_alerts(self) -> None:
        """Wait for in-flight alerter calls."""
        while self._alert_tasks:
            await asyncio.gather(*list(self._alert_tasks))

    # --- Position Tracker ---

    def on_position_update(self, position: Position | None, heading: float | None = None) -> AnchorState:
        """Store a vessel fix and heading. Unknown values are stored as None."""
        self._stats.record_position(known=position is not None)
        if heading is not None and not math.isfinite(heading):
            heading = None
        if heading is not None:
            heading = geo.normalize_degrees(heading)

        state = self._commit(vessel_position=position, vessel_heading=heading)
        if state.is_active and position is not None:
            self._track.append(TrackPoint(
                latitude=position.latitude,
                longitude=position.longitude,
                timestamp=state.updated_at or _now(),
            ))
        return state

    def on_settings_update(self, update: SettingsUpdate) -> AnchorState:
        """Adopt anchor settings reported upstream."""
        self._stats.record_settings_update()
        if self._state.pending_commands:
            # Our own write hasn't landed yet; the upstream view is stale.
            log.debug("settings_update_deferred", pending=list(self._state.pending_commands))
            return self._state

        was_active = self._state.is_active
        if update.anchor_cleared:
            if was_active:
                log.info("anchor_raised_upstream")
                self._end_watch()
            return self._state

        changes: dict = {}
        if update.anchor_position is not None and update.anchor_position != self._state.anchor_position:
            changes["anchor_position"] = update.anchor_position
            changes["is_active"] = True
        for name in ("max_radius", "rode_length", "distance_from_bow", "fudge_factor"):
            value = getattr(update, name)
            if value is not None and value != getattr(self._state, name):
                changes[name] = value
        if not changes:
            return self._state

        log.info("settings_adopted", fields=sorted(changes))
        if changes.get("is_active") and not was_active:
            self._track.clear()
            self._alarm.reset()
            self._watchdog.start()
        return self._commit(**changes)

    def on_sensor_update(self, update: SensorUpdate) -> AnchorState:
        """Store depth and vessel dimensions. They never affect the alarm."""
        values = dataclasses.asdict(update)
        if all(getattr(self._state, name) == value for name, value in values.items()):
            return self._state
        return self._commit(**values)

    def handle_event(self, event: FeedEvent) -> AnchorState:
        if isinstance(event, PositionUpdate):
            return self.on_position_update(event.position, event.heading)
        if isinstance(event, SensorUpdate):
            return self.on_sensor_update(event)
        return self.on_settings_update(event)

    async def run_feed_consumer(self) -> None:
        """Consume feed events and apply them. Runs as a background task."""
        log.info("feed_consumer_started")
        while True:
            event = await self._feed.get()
            try:
                self.handle_event(event)
            except Exception:
                self._stats.record_feed_error()
                log.error("feed_event_failed", event=type(event).__name__, exc_info=True)

    # --- Check-In Watchdog callbacks ---

    def _on_check_in_required(self) -> None:
        if not self._state.is_active:
            self._watchdog.stop()
            return
        self._stats.record_check_in_requested()
        message = self._watchdog.config.message or DEFAULT_CHECK_IN_MESSAGE
        self._spawn(self._alerter.notify(CHECK_IN_TITLE, message))
        self._commit()

    def _on_check_in_missed(self) -> None:
        if not self._state.is_active:
            self._watchdog.stop()
            return
        self._stats.record_check_in_missed()
        self._commit()

    def acknowledge_check_in(self) -> bool:
        """Crew confirms they are watching; clears any forced check-in alarm."""
        if not self._watchdog.acknowledge():
            return False
        self._stats.record_check_in_acknowledged()
        self._commit()
        return True

    def set_check_in_config(self, config: CheckInConfig) -> None:
        self._watchdog.configure(config, watch_active=self._state.is_active)
        log.info("check_in_configured", **config.to_dict())
        self._commit()

    # --- Alarm ---

    def acknowledge_alarm(self) -> bool:
        """Silence the current alarm episode. The alarm level is unchanged."""
        if not self._alarm.acknowledge(self._state.current_radius):
            return False
        self._stats.record_alarm_acknowledged()
        log.info("alarm_acknowledged", level=self._alarm.level.label,
                 distance=self._state.current_radius)
        self._commit()
        return True

    def set_alarm_sound(self, sound: str) -> bool:
        if sound not in ALARM_SOUNDS:
            log.warning("unknown_alarm_sound", sound=sound)
            return False
        self._alarm_sound = sound
        return True

    # --- Command Interface ---

    async def _optimistic(
        self,
        name: str,
        changes: dict,
        write: Callable[[], Awaitable[None]],
        on_rollback: Callable[[], None] | None = None,
    ) -> CommandResult:
        previous = self._state
        watch_id = self._watch_id
        self._commit(
            pending_commands=previous.pending_commands + (name,),
            last_command_error=None,
            **changes,
        )
        try:
            await write()
        except TelemetryError as exc:
            error = str(exc)
            self._stats.record_command(ok=False)
            log.error("command_failed", command=name, error=error)
            # Only undo fields nothing else has touched since, and never
            # resurrect a watch that ended while the write was in flight.
            rollback = {}
            if watch_id == self._watch_id:
                rollback = {
                    key: getattr(previous, key) for key, value in changes.items()
                    if getattr(self._state, key) == value
                }
            if len(rollback) < len(changes):
                log.info("rollback_skipped", command=name,
                         fields=sorted(set(changes) - set(rollback)))
            self._commit(
                pending_commands=self._without_pending(name),
                last_command_error=error,
                **rollback,
            )
            if on_rollback is not None and rollback:
                on_rollback()
            return False, error

        self._stats.record_command(ok=True)
        log.info("command_confirmed", command=name)
        self._commit(pending_commands=self._without_pending(name))
        return True, ""

    def _without_pending(self, name: str) -> tuple[str, ...]:
        pending = list(self._state.pending_commands)
        if name in pending:
            pending.remove(name)
        return tuple(pending)

    def _reject(self, command: str, error: str) -> CommandResult:
        log.warning("command_rejected", command=command, error=error)
        return False, error

    async def drop_anchor(self, radius: float | None = None) -> CommandResult:
        """Set the anchor at the vessel's current position and start watching."""
        if self._state.is_active:
            return self._reject("drop_anchor", "anchor is already down")
        vessel = self._state.vessel_position
        if vessel is None:
            return self._reject("drop_anchor", "vessel position unknown")
        if radius is not None and not (math.isfinite(radius) and radius > 0):
            return self._reject("drop_anchor", "radius must be positive")

        anchor = Position(latitude=vessel.latitude, longitude=vessel.longitude)
        changes: dict = {"is_active": True, "anchor_position": anchor}
        if radius is not None:
            changes["max_radius"] = radius

        self._track.clear()
        self._alarm.reset()
        self._watchdog.start()
        log.info("anchor_dropped", lat=anchor.latitude, lon=anchor.longitude, radius=radius)
        result = await self._optimistic(
            "drop_anchor", changes,
            lambda: self._writer.drop_anchor(anchor, radius),
            on_rollback=self._stop_watch_timers,
        )
        if result[0] and self._state.vessel_position is not None:
            self._track.append(TrackPoint(
                latitude=self._state.vessel_position.latitude,
                longitude=self._state.vessel_position.longitude,
                timestamp=_now(),
            ))
        return result

    def _stop_watch_timers(self) -> None:
        self._watchdog.stop()
        self._alarm.reset()
        self._commit()

    def _end_watch(self, **extra) -> AnchorState:
        self._watch_id += 1
        self._watchdog.stop()
        self._alarm.reset()
        self._track.clear()
        cleared = {name: getattr(AnchorState(), name) for name in _WATCH_FIELDS}
        return self._commit(**cleared, **extra)

    async def raise_anchor(self) -> CommandResult:
        """End the watch. Always succeeds locally once a watch is active."""
        if not self._state.is_active:
            return self._reject("raise_anchor", "no active anchor watch")

        log.info("anchor_raised")
        self._end_watch(
            pending_commands=self._state.pending_commands + ("raise_anchor",),
            last_command_error=None,
        )
        error = None
        try:
            await self._writer.raise_anchor()
        except TelemetryError as exc:
            error = str(exc)
            log.error("command_failed", command="raise_anchor", error=error)
        self._stats.record_command(ok=error is None)
        self._commit(
            pending_commands=self._without_pending("raise_anchor"),
            last_command_error=error,
        )
        return True, ""

    async def set_radius(self, radius: float | None = None) -> CommandResult:
        """Set the alarm radius; by default the current distance to the anchor."""
        if not self._state.is_active:
            return self._reject("set_radius", "no active anchor watch")
        if radius is None:
            radius = self._state.current_radius
            if radius is None:
                return self._reject("set_radius", "distance to anchor unknown")
        if not (math.isfinite(radius) and radius > 0):
            return self._reject("set_radius", "radius must be positive")

        log.info("radius_set", radius=radius)
        value = radius
        return await self._optimistic(
            "set_radius", {"max_radius": value},
            lambda: self._writer.set_radius(value),
        )

    async def set_rode_length(self, length: float, depth: float | None = None) -> CommandResult:
        """Record how much rode is out. Doesn't affect the alarm.

        Without an explicit depth, the depth sensor reading is sent along.
        """
        if depth is None:
            depth = self._state.depth
        if not (math.isfinite(length) and length >= 0):
            return self._reject("set_rode_length", "rode length must be zero or more")
        if depth is not None and not math.isfinite(depth):
            return self._reject("set_rode_length", "depth must be a number")

        log.info("rode_length_set", length=length, depth=depth)
        return await self._optimistic(
            "set_rode_length", {"rode_length": length},
            lambda: self._writer.set_rode_length(length, depth),
        )

    async def set_anchor_position(self, latitude: float, longitude: float) -> CommandResult:
        """Move the anchor, e.g. to correct where it actually set."""
        if not self._state.is_active:
            return self._reject("set_anchor_position", "no active anchor watch")
        if not (math.isfinite(latitude) and math.isfinite(longitude)
                and -90 <= latitude <= 90 and -180 <= longitude <= 180):
            return self._reject("set_anchor_position", "invalid coordinates")

        anchor = Position(latitude=latitude, longitude=longitude)
        log.info("anchor_position_set", lat=latitude, lon=longitude)
        return await self._optimistic(
            "set_anchor_position", {"anchor_position": anchor},
            lambda: self._writer.set_anchor_position(anchor),
        )

    async def set_anchor_from_bearing(self, bearing_deg: float, distance_m: float) -> CommandResult:
        """Place the anchor ``distance_m`` from the vessel along ``bearing_deg``."""
        vessel = self._state.vessel_position
        if vessel is None:
            return self._reject("set_anchor_position", "vessel position unknown")
        if not (math.isfinite(bearing_deg) and math.isfinite(distance_m) and distance_m >= 0):
            return self._reject("set_anchor_position", "invalid bearing or distance")
        lat, lon = geo.destination_point(vessel.latitude, vessel.longitude,
                                         bearing_deg, distance_m)
        return await self.set_anchor_position(lat, lon)

    async def fetch_track_history(self) -> bool:
        """Replace the local track with the upstream one, if it has any points."""
        try:
            points = await self._writer.get_track()
        except TelemetryError as exc:
            log.warning("track_fetch_failed", error=str(exc))
            return False
        if points:
            self._track.clear()
            self._track.extend(points)
            log.info("track_fetched", points=len(points))
        return True

    # --- Teardown ---

    async def close(self) -> None:
        """Cancel timers and silence alerts. The engine ignores events afterwards."""
        if self._closed:
            return
        self._watchdog.stop()
        self._emergency_timer.cancel()
        self._repeat_timer.cancel()
        if self._sound_playing:
            self._sound_playing = False
            self._spawn(self._alerter.stop_sound())
        self._closed = True
        await self.flush_alerts()
        log.info("engine_closed")
