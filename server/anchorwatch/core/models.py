"""Anchor watch: core internal data models.

These are plain dataclasses with no framework dependencies.
SignalK JSON values are converted to/from these at the boundary.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

# Alarm sound identifiers understood by the alerting side.
ALARM_SOUNDS = ("bell", "foghorn", "chimes", "ding", "whistle", "dog")
DEFAULT_ALARM_SOUND = "foghorn"


class AlarmLevel(enum.IntEnum):
    """Alarm severity, ordered. Names match SignalK notification states."""

    NORMAL = 0
    WARN = 1
    ALARM = 2
    EMERGENCY = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def is_alarming(self) -> bool:
        return self >= AlarmLevel.ALARM

    @property
    def is_warning(self) -> bool:
        return self >= AlarmLevel.WARN


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    altitude: float | None = None  # depth, negative meters below surface

    def to_dict(self) -> dict:
        data = {"latitude": self.latitude, "longitude": self.longitude}
        if self.altitude is not None:
            data["altitude"] = self.altitude
        return data


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_position(raw: object) -> Position | None:
    """Parse a SignalK position value. Returns None when malformed."""
    if not isinstance(raw, dict):
        return None
    lat = raw.get("latitude")
    lon = raw.get("longitude")
    if not (_is_number(lat) and _is_number(lon)):
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    alt = raw.get("altitude")
    return Position(
        latitude=float(lat),
        longitude=float(lon),
        altitude=float(alt) if _is_number(alt) else None,
    )


def parse_number(raw: object) -> float | None:
    """Numeric SignalK value or None."""
    return float(raw) if _is_number(raw) else None


@dataclass(frozen=True)
class TrackPoint:
    latitude: float
    longitude: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class CheckInConfig:
    """Check-in (vigilance) configuration for one engine."""

    enabled: bool = False
    interval: timedelta = timedelta(minutes=30)
    grace_period: timedelta = timedelta(seconds=60)
    message: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> CheckInConfig:
        interval = data.get("intervalMinutes", 30)
        grace = data.get("gracePeriodSeconds", 60)
        return cls(
            enabled=bool(data.get("enabled", False)),
            interval=timedelta(minutes=interval if _is_number(interval) else 30),
            grace_period=timedelta(seconds=grace if _is_number(grace) else 60),
            message=data.get("customMessage"),
        )

    def to_dict(self) -> dict:
        data = {
            "enabled": self.enabled,
            "intervalMinutes": round(self.interval.total_seconds() / 60, 3),
            "gracePeriodSeconds": round(self.grace_period.total_seconds(), 3),
        }
        if self.message is not None:
            data["customMessage"] = self.message
        return data


@dataclass(frozen=True)
class AlarmThresholds:
    """Percent-of-radius cut points for the alarm state machine."""

    warn_pct: float = 80.0
    alarm_pct: float = 100.0
    hysteresis_pct: float = 5.0
    emergency_after: timedelta = timedelta(seconds=60)
    rearm_distance_m: float = 5.0


@dataclass(frozen=True)
class AnchorState:
    """Immutable snapshot of the anchor watch, published on every change."""

    is_active: bool = False
    anchor_position: Position | None = None
    vessel_position: Position | None = None
    vessel_heading: float | None = None
    max_radius: float | None = None
    current_radius: float | None = None
    radius_percentage: float | None = None
    bearing_degrees: float | None = None
    apparent_bearing: float | None = None
    rode_length: float | None = None
    distance_from_bow: float | None = None  # anchor to bow, reported by the plugin
    fudge_factor: float | None = None  # plugin margin added to the radius
    depth: float | None = None  # below surface, from the depth sensor
    gps_from_bow: float | None = None
    vessel_length: float | None = None  # length overall
    alarm_state: AlarmLevel = AlarmLevel.NORMAL
    alarm_message: str | None = None
    alarm_silenced: bool = False
    awaiting_check_in: bool = False
    check_in_deadline: datetime | None = None
    check_in_missed: bool = False
    pending_commands: tuple[str, ...] = ()
    last_command_error: str | None = None
    updated_at: datetime | None = None

    @property
    def display_percentage(self) -> float | None:
        """Radius percentage clamped to [0, 100] for gauges."""
        if self.radius_percentage is None:
            return None
        return max(0.0, min(self.radius_percentage, 100.0))

    @property
    def severity_band(self) -> str | None:
        pct = self.radius_percentage
        if pct is None:
            return None
        if pct >= 100:
            return "red"
        if pct >= 80:
            return "orange"
        if pct >= 60:
            return "yellow"
        return "green"

    def to_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "anchor_position": self.anchor_position.to_dict() if self.anchor_position else None,
            "vessel_position": self.vessel_position.to_dict() if self.vessel_position else None,
            "vessel_heading": self.vessel_heading,
            "max_radius": self.max_radius,
            "current_radius": self.current_radius,
            "radius_percentage": self.radius_percentage,
            "display_percentage": self.display_percentage,
            "severity_band": self.severity_band,
            "bearing_degrees": self.bearing_degrees,
            "apparent_bearing": self.apparent_bearing,
            "rode_length": self.rode_length,
            "distance_from_bow": self.distance_from_bow,
            "fudge_factor": self.fudge_factor,
            "depth": self.depth,
            "gps_from_bow": self.gps_from_bow,
            "vessel_length": self.vessel_length,
            "alarm_state": self.alarm_state.label,
            "alarm_message": self.alarm_message,
            "alarm_silenced": self.alarm_silenced,
            "awaiting_check_in": self.awaiting_check_in,
            "check_in_deadline": self.check_in_deadline.isoformat() if self.check_in_deadline else None,
            "check_in_missed": self.check_in_missed,
            "pending_commands": list(self.pending_commands),
            "last_command_error": self.last_command_error,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# --- Feed events ---


@dataclass(frozen=True)
class PositionUpdate:
    """A vessel fix from the telemetry feed. None means unknown."""

    position: Position | None
    heading: float | None = None  # degrees


@dataclass(frozen=True)
class SettingsUpdate:
    """Anchor settings reported upstream (e.g. changed from another display).

    Fields left as None were not reported and are kept as they are.
    """

    anchor_position: Position | None = None
    anchor_cleared: bool = False
    max_radius: float | None = None
    rode_length: float | None = None
    distance_from_bow: float | None = None
    fudge_factor: float | None = None


@dataclass(frozen=True)
class SensorUpdate:
    """Vessel sensor and design values. None means not reported right now."""

    depth: float | None = None
    gps_from_bow: float | None = None
    vessel_length: float | None = None


FeedEvent = PositionUpdate | SettingsUpdate | SensorUpdate
