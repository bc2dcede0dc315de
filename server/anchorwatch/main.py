"""Anchor watch service: main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, feed, telemetry, alerts, and API layers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from anchorwatch.alerts.base import CompositeAlerter
from anchorwatch.alerts.log_alerter import LogAlerter
from anchorwatch.alerts.webhook import WebhookAlerter
from anchorwatch.api.anchor import router as anchor_router
from anchorwatch.api.feed import router as feed_router
from anchorwatch.api.monitoring import router as monitoring_router
from anchorwatch.config import AppConfig, load_config
from anchorwatch.core.engine import AnchorWatchEngine
from anchorwatch.core.stats import WatchStats
from anchorwatch.feed.asyncio_feed import AsyncioTelemetryFeed
from anchorwatch.feed.signalk_feed import SignalKPollingFeed
from anchorwatch.telemetry.local import LocalTelemetryWriter
from anchorwatch.telemetry.signalk_writer import SignalKPluginWriter

log = structlog.get_logger()

# Module-level singletons (set during startup)
_engine: AnchorWatchEngine | None = None
_stats: WatchStats | None = None
_config: AppConfig | None = None
_push_feed: AsyncioTelemetryFeed | None = None


def get_engine() -> AnchorWatchEngine:
    assert _engine is not None, "Server not initialized"
    return _engine


def get_stats() -> WatchStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def get_push_feed() -> AsyncioTelemetryFeed | None:
    """The in-process feed, or None when positions come from SignalK."""
    return _push_feed


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


def build_engine(config: AppConfig, stats: WatchStats) -> tuple[AnchorWatchEngine, list]:
    """Create the engine and its adapters. Returns (engine, closables)."""
    global _push_feed

    closables: list = []
    if config.signalk.url:
        feed = SignalKPollingFeed(
            base_url=config.signalk.url,
            token=config.signalk.token,
            poll_interval_seconds=config.signalk.poll_interval_seconds,
            timeout_seconds=config.signalk.timeout_seconds,
        )
        writer = SignalKPluginWriter(
            base_url=config.signalk.url,
            token=config.signalk.token,
            timeout_seconds=config.signalk.timeout_seconds,
        )
        closables += [feed, writer]
        _push_feed = None
    else:
        feed = AsyncioTelemetryFeed(max_size=config.feed.queue_max_size)
        writer = LocalTelemetryWriter()
        _push_feed = feed

    alerters = [LogAlerter()]
    if config.alerts.webhook_url:
        alerters.append(WebhookAlerter(config.alerts.webhook_url))
    alerter = CompositeAlerter(alerters)
    closables.append(alerter)

    engine = AnchorWatchEngine(
        feed=feed,
        writer=writer,
        alerter=alerter,
        stats=stats,
        thresholds=config.alarm.thresholds(),
        check_in=config.checkin.to_check_in_config(),
        alarm_sound=config.alarm.sound,
        sound_repeat_seconds=config.alarm.repeat_seconds,
        max_track_points=config.track.max_points,
    )
    return engine, closables


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _engine, _stats, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             signalk_url=_config.signalk.url or None,
             check_in_enabled=_config.checkin.enabled)

    # Create components
    _stats = WatchStats(stale_after_seconds=_config.feed.stale_after_seconds)
    _engine, closables = build_engine(_config, _stats)

    # Start background feed consumer
    consumer_task = asyncio.create_task(_engine.run_feed_consumer())
    if _config.signalk.url:
        await _engine.fetch_track_history()

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    # Shutdown
    consumer_task.cancel()
    try:
        await consumer_task
    except asyncio.CancelledError:
        pass
    await _engine.close()
    for closable in closables:
        await closable.aclose()
    log.info("server_stopped")


app = FastAPI(
    title="Anchor Watch",
    description="Anchor alarm and crew check-in service",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(anchor_router)
app.include_router(feed_router)
app.include_router(monitoring_router)
