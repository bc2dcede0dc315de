"""In-process asyncio queue implementation of TelemetryFeed."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from anchorwatch.core.models import FeedEvent


class AsyncioTelemetryFeed:
    """TelemetryFeed backed by asyncio.Queue. Fed by the HTTP API or tests."""

    def __init__(self, max_size: int = 1_000) -> None:
        self._queue: asyncio.Queue[FeedEvent] = asyncio.Queue(maxsize=max_size)

    async def put(self, event: FeedEvent) -> None:
        await self._queue.put(event)

    def put_nowait(self, event: FeedEvent) -> None:
        self._queue.put_nowait(event)

    async def get(self) -> FeedEvent:
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()
