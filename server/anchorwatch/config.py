"""Service configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: ANCHOR_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path

import yaml

from anchorwatch.core.models import DEFAULT_ALARM_SOUND, AlarmThresholds, CheckInConfig


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class SignalKConfig:
    url: str = ""  # empty: run standalone, positions pushed over HTTP
    token: str = ""
    poll_interval_seconds: float = 1.0
    timeout_seconds: float = 5.0


@dataclass
class FeedConfig:
    queue_max_size: int = 1_000
    stale_after_seconds: float = 10.0


@dataclass
class AlarmConfig:
    sound: str = DEFAULT_ALARM_SOUND
    warn_pct: float = 80.0
    alarm_pct: float = 100.0
    hysteresis_pct: float = 5.0
    emergency_after_seconds: float = 60.0
    rearm_distance_m: float = 5.0
    repeat_seconds: float = 5.0  # 0 plays the sound once

    def thresholds(self) -> AlarmThresholds:
        return AlarmThresholds(
            warn_pct=self.warn_pct,
            alarm_pct=self.alarm_pct,
            hysteresis_pct=self.hysteresis_pct,
            emergency_after=timedelta(seconds=self.emergency_after_seconds),
            rearm_distance_m=self.rearm_distance_m,
        )


@dataclass
class CheckInSection:
    enabled: bool = False
    interval_minutes: float = 30.0
    grace_period_seconds: float = 60.0
    message: str = ""

    def to_check_in_config(self) -> CheckInConfig:
        return CheckInConfig(
            enabled=self.enabled,
            interval=timedelta(minutes=self.interval_minutes),
            grace_period=timedelta(seconds=self.grace_period_seconds),
            message=self.message or None,
        )


@dataclass
class TrackConfig:
    max_points: int = 2_000


@dataclass
class AlertsConfig:
    webhook_url: str = ""


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    signalk: SignalKConfig = field(default_factory=SignalKConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    alarm: AlarmConfig = field(default_factory=AlarmConfig)
    checkin: CheckInSection = field(default_factory=CheckInSection)
    track: TrackConfig = field(default_factory=TrackConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "ANCHOR_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "ANCHOR_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "ANCHOR_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "ANCHOR_SIGNALK_URL": lambda v: setattr(config.signalk, "url", v),
        "ANCHOR_SIGNALK_TOKEN": lambda v: setattr(config.signalk, "token", v),
        "ANCHOR_SIGNALK_POLL_INTERVAL": lambda v: setattr(config.signalk, "poll_interval_seconds", float(v)),
        "ANCHOR_FEED_STALE_AFTER": lambda v: setattr(config.feed, "stale_after_seconds", float(v)),
        "ANCHOR_ALARM_SOUND": lambda v: setattr(config.alarm, "sound", v),
        "ANCHOR_ALARM_WARN_PCT": lambda v: setattr(config.alarm, "warn_pct", float(v)),
        "ANCHOR_ALARM_ALARM_PCT": lambda v: setattr(config.alarm, "alarm_pct", float(v)),
        "ANCHOR_ALARM_EMERGENCY_AFTER": lambda v: setattr(config.alarm, "emergency_after_seconds", float(v)),
        "ANCHOR_ALARM_REPEAT_SECONDS": lambda v: setattr(config.alarm, "repeat_seconds", float(v)),
        "ANCHOR_CHECKIN_ENABLED": lambda v: setattr(config.checkin, "enabled", _parse_bool(v)),
        "ANCHOR_CHECKIN_INTERVAL_MINUTES": lambda v: setattr(config.checkin, "interval_minutes", float(v)),
        "ANCHOR_CHECKIN_GRACE_SECONDS": lambda v: setattr(config.checkin, "grace_period_seconds", float(v)),
        "ANCHOR_ALERTS_WEBHOOK_URL": lambda v: setattr(config.alerts, "webhook_url", v),
        "ANCHOR_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "ANCHOR_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path(os.environ.get("ANCHOR_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section_field in fields(config):
            values = raw.get(section_field.name)
            if not isinstance(values, dict):
                continue
            section = getattr(config, section_field.name)
            for k, v in values.items():
                if hasattr(section, k):
                    setattr(section, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
