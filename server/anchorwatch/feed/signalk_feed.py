"""SignalK REST polling implementation of TelemetryFeed.

Polls ``/signalk/v1/api/vessels/self`` and turns each snapshot into one
PositionUpdate, one SensorUpdate (depth, GPS antenna offset, vessel length)
and, when anchor data is present, one SettingsUpdate. SignalK reports
headings in radians; the feed hands the engine degrees.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque

import httpx
import structlog

from anchorwatch.core.geo import normalize_degrees
from anchorwatch.core.models import (
    FeedEvent,
    PositionUpdate,
    SensorUpdate,
    SettingsUpdate,
    parse_number,
    parse_position,
)
from anchorwatch.telemetry.base import TelemetryError

log = structlog.get_logger()

VESSEL_PATH = "/signalk/v1/api/vessels/self"


def _value(node: object, key: str) -> object:
    """The ``value`` of a SignalK leaf, or None."""
    if not isinstance(node, dict):
        return None
    leaf = node.get(key)
    return leaf.get("value") if isinstance(leaf, dict) else None


def _node(tree: object, *keys: str) -> object:
    """Walk nested SignalK groups; None if any step is missing."""
    for key in keys:
        if not isinstance(tree, dict):
            return None
        tree = tree.get(key)
    return tree


def parse_navigation(tree: object) -> list[FeedEvent]:
    """Convert a SignalK navigation subtree into feed events."""
    if not isinstance(tree, dict):
        return [PositionUpdate(position=None)]

    heading_rad = parse_number(_value(tree, "headingTrue"))
    if heading_rad is None:
        # Fall back to magnetic if true heading is not available.
        heading_rad = parse_number(_value(tree, "headingMagnetic"))
    heading = normalize_degrees(math.degrees(heading_rad)) if heading_rad is not None else None

    events: list[FeedEvent] = [
        PositionUpdate(position=parse_position(_value(tree, "position")), heading=heading),
    ]

    anchor = tree.get("anchor")
    if isinstance(anchor, dict):
        raw_position = _value(anchor, "position")
        events.append(SettingsUpdate(
            anchor_position=parse_position(raw_position),
            anchor_cleared="position" in anchor and raw_position is None,
            max_radius=parse_number(_value(anchor, "maxRadius")),
            rode_length=parse_number(_value(anchor, "rodeLength")),
            distance_from_bow=parse_number(_value(anchor, "distanceFromBow")),
            fudge_factor=parse_number(_value(anchor, "fudgeFactor")),
        ))
    return events


def parse_vessel(tree: object) -> list[FeedEvent]:
    """Convert a SignalK ``vessels/self`` tree into feed events."""
    if not isinstance(tree, dict):
        return [PositionUpdate(position=None)]

    events = parse_navigation(tree.get("navigation"))
    # design.length is an object value: {"overall": .., "hull": ..}
    length = _value(tree.get("design"), "length")
    events.append(SensorUpdate(
        depth=parse_number(_value(_node(tree, "environment", "depth"), "belowSurface")),
        gps_from_bow=parse_number(_value(_node(tree, "sensors", "gps"), "fromBow")),
        vessel_length=parse_number(length.get("overall")) if isinstance(length, dict) else None,
    ))
    return events


class SignalKPollingFeed:
    """TelemetryFeed that polls the SignalK REST API at a fixed interval."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        poll_interval_seconds: float = 1.0,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout_seconds,
        )
        self._interval = poll_interval_seconds
        self._pending: deque[FeedEvent] = deque()
        self._polled = False

    async def poll(self) -> list[FeedEvent]:
        try:
            response = await self._client.get(VESSEL_PATH)
            response.raise_for_status()
            tree = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TelemetryError(f"vessel poll failed: {exc}") from exc
        return parse_vessel(tree)

    async def get(self) -> FeedEvent:
        while not self._pending:
            if self._polled:
                await asyncio.sleep(self._interval)
            self._polled = True
            try:
                self._pending.extend(await self.poll())
            except TelemetryError as exc:
                log.warning("feed_poll_failed", error=str(exc))
        return self._pending.popleft()

    async def aclose(self) -> None:
        await self._client.aclose()
