"""Feed interface (port) for telemetry coming from the boat."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from anchorwatch.core.models import FeedEvent


class TelemetryFeed(Protocol):
    """Port: delivers vessel fixes and anchor settings changes in order."""

    async def get(self) -> FeedEvent: ...
