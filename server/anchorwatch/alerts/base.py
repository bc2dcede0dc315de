"""Alerter interface (port) for audible and visual anchor alarms."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from anchorwatch.core.models import AlarmLevel

log = structlog.get_logger()


class Alerter(Protocol):
    """Port: plays alarm sounds and shows notifications."""

    async def start_sound(self, sound: str, level: AlarmLevel, message: str) -> None: ...

    async def stop_sound(self) -> None: ...

    async def notify(self, title: str, body: str) -> None: ...


class CompositeAlerter:
    """Fans each alert out to several alerters; one failing doesn't stop the rest."""

    def __init__(self, alerters: list[Alerter]) -> None:
        self._alerters = list(alerters)

    async def start_sound(self, sound: str, level: AlarmLevel, message: str) -> None:
        for alerter in self._alerters:
            try:
                await alerter.start_sound(sound, level, message)
            except Exception:
                log.error("alert_failed", alerter=type(alerter).__name__,
                          action="start_sound", exc_info=True)

    async def stop_sound(self) -> None:
        for alerter in self._alerters:
            try:
                await alerter.stop_sound()
            except Exception:
                log.error("alert_failed", alerter=type(alerter).__name__,
                          action="stop_sound", exc_info=True)

    async def notify(self, title: str, body: str) -> None:
        for alerter in self._alerters:
            try:
                await alerter.notify(title, body)
            except Exception:
                log.error("alert_failed", alerter=type(alerter).__name__,
                          action="notify", exc_info=True)

    async def aclose(self) -> None:
        for alerter in self._alerters:
            close = getattr(alerter, "aclose", None)
            if close is not None:
                await close()
