"""Telemetry writer interface (port) for pushing anchor changes upstream."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from anchorwatch.core.models import Position, TrackPoint


class TelemetryError(Exception):
    """An upstream read or write failed (network error or non-2xx reply)."""


class TelemetryWriter(Protocol):
    """Port: persists anchor watch settings on the telemetry server.

    Every method raises TelemetryError on failure.
    """

    async def drop_anchor(self, position: Position, radius: float | None = None) -> None: ...

    async def raise_anchor(self) -> None: ...

    async def set_radius(self, radius: float) -> None: ...

    async def set_rode_length(self, length: float, depth: float | None = None) -> None: ...

    async def set_anchor_position(self, position: Position) -> None: ...

    async def get_track(self) -> list[TrackPoint]: ...
