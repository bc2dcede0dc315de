"""Tests for WatchStats and feed liveness tracking."""

from __future__ import annotations

import time

from anchorwatch.core.stats import WatchStats


def test_initial_stats():
    stats = WatchStats()
    snap = stats.snapshot()
    assert snap["positions_received"] == 0
    assert snap["alarms_raised"] == 0
    assert snap["feed"]["live"] is False
    assert snap["feed"]["last_fix_age_seconds"] is None
    assert snap["feed"]["stale_after_seconds"] == 10.0
    assert not stats.feed_live()


def test_record_known_position():
    stats = WatchStats()
    stats.record_position(known=True)
    stats.record_position(known=True)

    snap = stats.snapshot()
    assert snap["positions_received"] == 2
    assert snap["positions_unknown"] == 0
    assert snap["feed"]["live"] is True
    assert snap["feed"]["last_fix_age_seconds"] is not None


def test_unknown_position_does_not_refresh_liveness():
    stats = WatchStats()
    stats.record_position(known=False)

    snap = stats.snapshot()
    assert snap["positions_received"] == 1
    assert snap["positions_unknown"] == 1
    assert snap["feed"]["live"] is False


def test_feed_goes_stale():
    """A feed with no fix inside the window is reported as not live."""
    stats = WatchStats(stale_after_seconds=0.1)
    stats.record_position(known=True)
    assert stats.feed_live()

    # Wait for the window to expire
    time.sleep(0.15)

    assert not stats.feed_live()
    assert stats.snapshot()["feed"]["live"] is False


def test_command_counters():
    stats = WatchStats()
    stats.record_command(ok=True)
    stats.record_command(ok=True)
    stats.record_command(ok=False)

    snap = stats.snapshot()
    assert snap["commands_confirmed"] == 2
    assert snap["commands_failed"] == 1


def test_alarm_and_check_in_counters():
    stats = WatchStats()
    stats.record_alarm()
    stats.record_alarm_acknowledged()
    stats.record_check_in_requested()
    stats.record_check_in_requested()
    stats.record_check_in_acknowledged()
    stats.record_check_in_missed()
    stats.record_settings_update()
    stats.record_feed_error()
    stats.record_alert_error()

    snap = stats.snapshot()
    assert snap["alarms_raised"] == 1
    assert snap["alarms_acknowledged"] == 1
    assert snap["check_ins_requested"] == 2
    assert snap["check_ins_acknowledged"] == 1
    assert snap["check_ins_missed"] == 1
    assert snap["settings_updates"] == 1
    assert snap["feed_errors"] == 1
    assert snap["alert_errors"] == 1
