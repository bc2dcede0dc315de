"""Alerter that POSTs alarms to a crew notification webhook."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from anchorwatch.core.models import AlarmLevel

log = structlog.get_logger()


class WebhookAlerter:
    """Sends JSON ``{title, body, level?, sound?}`` to a configured URL.

    A webhook message can't be taken back, so stop_sound sends nothing.
    Repeats of an alarm that was already delivered are not sent again.
    Failures raise httpx errors; the caller logs them.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._delivered: tuple[str, str] | None = None

    async def _post(self, payload: dict) -> None:
        response = await self._client.post(self._url, json=payload)
        response.raise_for_status()
        log.debug("webhook_sent", status=response.status_code)

    async def start_sound(self, sound: str, level: AlarmLevel, message: str) -> None:
        key = (level.label, message)
        if key == self._delivered:
            return
        await self._post({
            "title": "ANCHOR ALARM",
            "body": message,
            "level": level.label,
            "sound": sound,
        })
        self._delivered = key

    async def stop_sound(self) -> None:
        self._delivered = None
        log.debug("webhook_stop_ignored")

    async def notify(self, title: str, body: str) -> None:
        await self._post({"title": title, "body": body})

    async def aclose(self) -> None:
        await self._client.aclose()
