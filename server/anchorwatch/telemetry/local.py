"""Standalone TelemetryWriter for running without a SignalK server."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from anchorwatch.core.models import Position, TrackPoint

log = structlog.get_logger()


class LocalTelemetryWriter:
    """Accepts every write; the engine's own state is the only copy."""

    async def drop_anchor(self, position: Position, radius: float | None = None) -> None:
        log.debug("local_drop_anchor", lat=position.latitude, lon=position.longitude,
                  radius=radius)

    async def raise_anchor(self) -> None:
        log.debug("local_raise_anchor")

    async def set_radius(self, radius: float) -> None:
        log.debug("local_set_radius", radius=radius)

    async def set_rode_length(self, length: float, depth: float | None = None) -> None:
        log.debug("local_set_rode_length", length=length, depth=depth)

    async def set_anchor_position(self, position: Position) -> None:
        log.debug("local_set_anchor_position", lat=position.latitude, lon=position.longitude)

    async def get_track(self) -> list[TrackPoint]:
        return []
