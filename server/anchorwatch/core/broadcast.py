"""Publish/subscribe channel for AnchorState snapshots."""

from __future__ import annotations

import asyncio

import structlog

from anchorwatch.core.models import AnchorState

log = structlog.get_logger()


class StateChannel:
    """Fans every published snapshot out to per-subscriber asyncio queues.

    Snapshots are immutable, so all subscribers share the same object. A
    subscriber that falls behind loses its oldest snapshots, never the latest.
    """

    def __init__(self, max_backlog: int = 100) -> None:
        self._max_backlog = max_backlog
        self._subscribers: list[asyncio.Queue[AnchorState]] = []

    def subscribe(self) -> asyncio.Queue[AnchorState]:
        queue: asyncio.Queue[AnchorState] = asyncio.Queue(maxsize=self._max_backlog)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[AnchorState]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, state: AnchorState) -> None:
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
                log.debug("subscriber_lagging", backlog=self._max_backlog)
            queue.put_nowait(state)
