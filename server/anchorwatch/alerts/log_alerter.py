"""Alerter that records alarms in the structured log.

Actual audio playback belongs to the display; this alerter resolves the
sound asset and logs what should be playing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from anchorwatch.core.models import ALARM_SOUNDS, DEFAULT_ALARM_SOUND

if TYPE_CHECKING:
    from anchorwatch.core.models import AlarmLevel

log = structlog.get_logger()


def sound_asset(sound: str) -> str:
    """Asset path for an alarm sound; unknown names fall back to the foghorn."""
    if sound not in ALARM_SOUNDS:
        sound = DEFAULT_ALARM_SOUND
    return f"sounds/alarm_{sound}.mp3"


class LogAlerter:
    def __init__(self) -> None:
        self.playing: str | None = None

    async def start_sound(self, sound: str, level: AlarmLevel, message: str) -> None:
        self.playing = sound_asset(sound)
        log.warning("alarm_sound_started", asset=self.playing,
                    level=level.label, message=message)

    async def stop_sound(self) -> None:
        if self.playing is not None:
            log.info("alarm_sound_stopped", asset=self.playing)
        self.playing = None

    async def notify(self, title: str, body: str) -> None:
        log.warning("alarm_notification", title=title, body=body)
