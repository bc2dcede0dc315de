"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

import anchorwatch.main as main_module
from anchorwatch.config import AppConfig
from anchorwatch.core.engine import AnchorWatchEngine
from anchorwatch.core.stats import WatchStats
from anchorwatch.feed.asyncio_feed import AsyncioTelemetryFeed
from anchorwatch.telemetry.base import TelemetryError
from anchorwatch.telemetry.local import LocalTelemetryWriter


class RecordingAlerter:
    """Alerter that remembers every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def start_sound(self, sound, level, message) -> None:
        self.calls.append(("start_sound", sound, level, message))

    async def stop_sound(self) -> None:
        self.calls.append(("stop_sound",))

    async def notify(self, title, body) -> None:
        self.calls.append(("notify", title, body))

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]


class FlakyWriter(LocalTelemetryWriter):
    """Writer whose upstream can be switched off."""

    def __init__(self) -> None:
        self.fail = False
        self.writes: list[str] = []

    async def _check(self, name: str) -> None:
        self.writes.append(name)
        if self.fail:
            raise TelemetryError(f"{name} failed: 503 Service Unavailable")

    async def drop_anchor(self, position, radius=None) -> None:
        await self._check("drop_anchor")

    async def raise_anchor(self) -> None:
        await self._check("raise_anchor")

    async def set_radius(self, radius) -> None:
        await self._check("set_radius")

    async def set_rode_length(self, length, depth=None) -> None:
        await self._check("set_rode_length")

    async def set_anchor_position(self, position) -> None:
        await self._check("set_anchor_position")

    async def get_track(self):
        await self._check("get_track")
        return []


@pytest.fixture
def alerter() -> RecordingAlerter:
    return RecordingAlerter()


@pytest.fixture
def writer() -> FlakyWriter:
    return FlakyWriter()


@pytest.fixture
async def make_engine(alerter, writer):
    """Factory for engines wired to the recording alerter and flaky writer."""
    engines: list[AnchorWatchEngine] = []

    def factory(**kwargs) -> AnchorWatchEngine:
        kwargs.setdefault("writer", writer)
        engine = AnchorWatchEngine(
            feed=AsyncioTelemetryFeed(),
            alerter=alerter,
            stats=WatchStats(),
            **kwargs,
        )
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        await engine.close()


@pytest.fixture(autouse=True)
def _init_server():
    """Initialize server singletons for every test."""
    config = AppConfig()
    config.logging.level = "warning"

    stats = WatchStats(stale_after_seconds=config.feed.stale_after_seconds)
    engine, _ = main_module.build_engine(config, stats)

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._engine = engine

    yield

    # Cleanup
    engine.watchdog.stop()
    main_module._config = None
    main_module._stats = None
    main_module._engine = None
    main_module._push_feed = None


@pytest.fixture
async def client():
    from anchorwatch.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
