"""Tests for the check-in watchdog, using short real timers."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from anchorwatch.core.models import CheckInConfig
from anchorwatch.core.watchdog import CheckInPhase, CheckInWatchdog

FAST = CheckInConfig(
    enabled=True,
    interval=timedelta(milliseconds=50),
    grace_period=timedelta(milliseconds=50),
)


class Recorder:
    def __init__(self) -> None:
        self.required = 0
        self.missed = 0

    def on_required(self) -> None:
        self.required += 1

    def on_missed(self) -> None:
        self.missed += 1


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def watchdog(recorder):
    dog = CheckInWatchdog(FAST, on_required=recorder.on_required, on_missed=recorder.on_missed)
    yield dog
    dog.stop()


@pytest.mark.asyncio
async def test_interval_then_awaiting(watchdog, recorder):
    watchdog.start()
    assert watchdog.phase == CheckInPhase.INTERVAL
    assert not watchdog.awaiting

    await asyncio.sleep(0.07)
    assert watchdog.phase == CheckInPhase.AWAITING
    assert watchdog.awaiting
    assert recorder.required == 1
    assert watchdog.deadline is not None
    assert watchdog.deadline > datetime.now(timezone.utc) - timedelta(seconds=1)


@pytest.mark.asyncio
async def test_grace_elapsed_times_out(watchdog, recorder):
    watchdog.start()
    await asyncio.sleep(0.15)
    assert watchdog.phase == CheckInPhase.TIMED_OUT
    assert watchdog.missed
    assert watchdog.awaiting  # still waiting for a human
    assert recorder.missed == 1
    assert not watchdog.timer_pending


@pytest.mark.asyncio
async def test_acknowledge_rearms_interval(watchdog, recorder):
    watchdog.start()
    await asyncio.sleep(0.07)
    assert watchdog.awaiting

    assert watchdog.acknowledge() is True
    assert watchdog.phase == CheckInPhase.INTERVAL
    assert watchdog.deadline is None
    assert watchdog.timer_pending

    # The old grace timer must not fire.
    await asyncio.sleep(0.04)
    assert recorder.missed == 0


@pytest.mark.asyncio
async def test_acknowledge_after_timeout(watchdog, recorder):
    watchdog.start()
    await asyncio.sleep(0.15)
    assert watchdog.missed

    assert watchdog.acknowledge() is True
    assert not watchdog.missed
    assert watchdog.phase == CheckInPhase.INTERVAL


@pytest.mark.asyncio
async def test_acknowledge_when_nothing_due(watchdog):
    assert watchdog.acknowledge() is False
    watchdog.start()
    assert watchdog.acknowledge() is False
    assert watchdog.phase == CheckInPhase.INTERVAL


@pytest.mark.asyncio
async def test_at_most_one_timer(watchdog):
    """Re-arming replaces the handle rather than adding a second one."""
    watchdog.start()
    first = watchdog._handle
    watchdog.start()
    assert first.cancelled()
    assert watchdog._handle is not first
    assert watchdog.timer_pending


@pytest.mark.asyncio
async def test_stop_cancels_and_stale_fire_is_noop(watchdog, recorder):
    watchdog.start()
    await asyncio.sleep(0.07)
    watchdog.stop()
    assert watchdog.phase == CheckInPhase.IDLE
    assert not watchdog.awaiting
    assert not watchdog.timer_pending

    await asyncio.sleep(0.1)
    assert recorder.missed == 0


@pytest.mark.asyncio
async def test_disabled_never_starts(recorder):
    dog = CheckInWatchdog(CheckInConfig(enabled=False),
                          on_required=recorder.on_required, on_missed=recorder.on_missed)
    dog.start()
    assert dog.phase == CheckInPhase.IDLE
    assert not dog.timer_pending


@pytest.mark.asyncio
async def test_configure_disable_clears_awaiting(watchdog):
    watchdog.start()
    await asyncio.sleep(0.07)
    assert watchdog.awaiting

    watchdog.configure(CheckInConfig(enabled=False), watch_active=True)
    assert not watchdog.awaiting
    assert not watchdog.timer_pending


@pytest.mark.asyncio
async def test_configure_enable_while_active(recorder):
    dog = CheckInWatchdog(CheckInConfig(enabled=False),
                          on_required=recorder.on_required, on_missed=recorder.on_missed)
    dog.configure(FAST, watch_active=False)
    assert dog.phase == CheckInPhase.IDLE

    dog.configure(FAST, watch_active=True)
    assert dog.phase == CheckInPhase.INTERVAL
    dog.stop()
