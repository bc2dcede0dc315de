"""SignalK anchor alarm plugin implementation of TelemetryWriter.

Talks to the plugin's REST endpoints under ``/plugins/anchoralarm/``.
The plugin works out the anchor position from the server's own fix on
drop, so the position passed to drop_anchor is only logged.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import httpx
import structlog

from anchorwatch.core.models import TrackPoint, parse_position
from anchorwatch.telemetry.base import TelemetryError

if TYPE_CHECKING:
    from anchorwatch.core.models import Position

log = structlog.get_logger()

PLUGIN_PREFIX = "/plugins/anchoralarm"


def parse_track(raw: object) -> list[TrackPoint]:
    """Parse the plugin's track: ``[{position: {latitude, longitude}, time}]``.

    Points with missing or non-numeric coordinates are skipped. ``time`` is
    milliseconds since the epoch; points without it are stamped now.
    """
    if not isinstance(raw, list):
        return []
    points: list[TrackPoint] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        position = parse_position(item.get("position"))
        if position is None:
            continue
        time_ms = item.get("time")
        if isinstance(time_ms, (int, float)) and not isinstance(time_ms, bool):
            timestamp = datetime.fromtimestamp(time_ms / 1000, tz=timezone.utc)
        else:
            timestamp = datetime.now(timezone.utc)
        points.append(TrackPoint(
            latitude=position.latitude,
            longitude=position.longitude,
            timestamp=timestamp,
        ))
    return points


class SignalKPluginWriter:
    """TelemetryWriter backed by the SignalK anchor alarm plugin REST API."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout_seconds,
        )

    async def _request(self, method: str, endpoint: str, body: dict | None = None) -> httpx.Response:
        path = f"{PLUGIN_PREFIX}/{endpoint}"
        try:
            response = await self._client.request(method, path, json=body)
        except httpx.HTTPError as exc:
            raise TelemetryError(f"{endpoint} failed: {exc}") from exc
        if not response.is_success:
            raise TelemetryError(
                f"{endpoint} failed: {response.status_code} {response.text[:200]}"
            )
        log.debug("plugin_request_ok", endpoint=endpoint, status=response.status_code)
        return response

    async def drop_anchor(self, position: Position, radius: float | None = None) -> None:
        body = {"radius": radius} if radius is not None else None
        log.debug("plugin_drop_anchor", lat=position.latitude, lon=position.longitude)
        await self._request("POST", "dropAnchor", body)

    async def raise_anchor(self) -> None:
        await self._request("POST", "raiseAnchor")

    async def set_radius(self, radius: float) -> None:
        await self._request("POST", "setRadius", {"radius": radius})

    async def set_rode_length(self, length: float, depth: float | None = None) -> None:
        body: dict = {"length": length}
        if depth is not None:
            body["depth"] = depth
        await self._request("POST", "setRodeLength", body)

    async def set_anchor_position(self, position: Position) -> None:
        await self._request("POST", "setAnchorPosition", {
            "position": {"latitude": position.latitude, "longitude": position.longitude},
        })

    async def get_track(self) -> list[TrackPoint]:
        response = await self._request("GET", "getTrack")
        try:
            raw = response.json()
        except ValueError as exc:
            raise TelemetryError(f"getTrack returned invalid JSON: {exc}") from exc
        return parse_track(raw)

    async def aclose(self) -> None:
        await self._client.aclose()
