"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from anchorwatch.core.models import ALARM_SOUNDS

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from anchorwatch.main import get_engine, get_stats

    engine = get_engine()
    snapshot = get_stats().snapshot()
    return {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "feed_live": snapshot["feed"]["live"],
        "watch_active": engine.state.is_active,
        "alarm_state": engine.state.alarm_state.label,
    }


@router.get("/stats")
async def stats() -> dict:
    """Detailed watch statistics.

    The ``feed`` section shows whether position fixes are still arriving:
    - ``live``: a known fix arrived within ``stale_after_seconds``
    - ``last_fix_age_seconds``: age of the most recent known fix
    """
    from anchorwatch.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Configuration endpoint for displays.

    A display calls this on startup to learn the alarm settings.
    """
    from anchorwatch.main import get_engine

    engine = get_engine()
    thresholds = engine.thresholds
    return {
        "alarm_sounds": list(ALARM_SOUNDS),
        "alarm_sound": engine.alarm_sound,
        "warn_pct": thresholds.warn_pct,
        "alarm_pct": thresholds.alarm_pct,
        "hysteresis_pct": thresholds.hysteresis_pct,
        "emergency_after_seconds": thresholds.emergency_after.total_seconds(),
        "check_in": engine.check_in_config.to_dict(),
    }
