"""Anchor watch API endpoints.

This is the thin FastAPI adapter. It parses HTTP requests and calls the
engine's Command Interface. Rejected or failed commands return 409 with
``{"accepted": false, "error": ...}``.
"""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from anchorwatch.core.models import CheckInConfig

router = APIRouter(prefix="/api/v1/anchor")


async def _read_json(request: Request) -> dict | None:
    """Parse the request body. An empty body is an empty object; junk is None."""
    body_bytes = await request.body()
    if not body_bytes.strip():
        return {}
    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _invalid_json() -> JSONResponse:
    return JSONResponse(content={"accepted": False, "error": "invalid JSON"}, status_code=400)


def _number(body: dict, key: str) -> float | None:
    value = body.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


def _command_response(accepted: bool, error: str) -> JSONResponse:
    from anchorwatch.main import get_engine

    return JSONResponse(
        content={"accepted": accepted, "error": error, "state": get_engine().state.to_dict()},
        status_code=200 if accepted else 409,
    )


@router.get("")
async def get_state() -> dict:
    """Current anchor watch snapshot."""
    from anchorwatch.main import get_engine

    return get_engine().state.to_dict()


@router.get("/events")
async def next_state(timeout: float = Query(default=25.0, ge=0, le=60)) -> dict:
    """Long-poll for the next state change.

    Returns the next published snapshot, or the current one if nothing
    changed within ``timeout`` seconds.
    """
    from anchorwatch.main import get_engine

    engine = get_engine()
    queue = engine.subscribe()
    try:
        state = await asyncio.wait_for(queue.get(), timeout=timeout)
    except asyncio.TimeoutError:
        state = engine.state
    finally:
        engine.unsubscribe(queue)
    return state.to_dict()


@router.post("/drop")
async def drop_anchor(request: Request) -> JSONResponse:
    """Drop anchor at the vessel's position. Body: {"radius": 30} (optional)."""
    from anchorwatch.main import get_engine

    body = await _read_json(request)
    if body is None:
        return _invalid_json()
    accepted, error = await get_engine().drop_anchor(radius=_number(body, "radius"))
    return _command_response(accepted, error)


@router.post("/raise")
async def raise_anchor() -> JSONResponse:
    from anchorwatch.main import get_engine

    accepted, error = await get_engine().raise_anchor()
    return _command_response(accepted, error)


@router.post("/radius")
async def set_radius(request: Request) -> JSONResponse:
    """Set the alarm radius. Without a body, the current distance is used."""
    from anchorwatch.main import get_engine

    body = await _read_json(request)
    if body is None:
        return _invalid_json()
    accepted, error = await get_engine().set_radius(radius=_number(body, "radius"))
    return _command_response(accepted, error)


@router.post("/rode")
async def set_rode_length(request: Request) -> JSONResponse:
    """Body: {"length": 40, "depth": 6} (depth optional)."""
    from anchorwatch.main import get_engine

    body = await _read_json(request)
    if body is None:
        return _invalid_json()
    length = _number(body, "length")
    if length is None:
        return _command_response(False, "length is required")
    accepted, error = await get_engine().set_rode_length(length, depth=_number(body, "depth"))
    return _command_response(accepted, error)


@router.post("/position")
async def set_anchor_position(request: Request) -> JSONResponse:
    """Move the anchor.

    Body is either {"latitude": .., "longitude": ..} or
    {"bearing": .., "distance": ..} measured from the vessel.
    """
    from anchorwatch.main import get_engine

    body = await _read_json(request)
    if body is None:
        return _invalid_json()
    engine = get_engine()
    lat, lon = _number(body, "latitude"), _number(body, "longitude")
    bearing, distance = _number(body, "bearing"), _number(body, "distance")
    if lat is not None and lon is not None:
        accepted, error = await engine.set_anchor_position(lat, lon)
    elif bearing is not None and distance is not None:
        accepted, error = await engine.set_anchor_from_bearing(bearing, distance)
    else:
        accepted, error = False, "latitude/longitude or bearing/distance required"
    return _command_response(accepted, error)


@router.post("/alarm/ack")
async def acknowledge_alarm() -> JSONResponse:
    from anchorwatch.main import get_engine

    silenced = get_engine().acknowledge_alarm()
    return _command_response(silenced, "" if silenced else "no alarm to acknowledge")


@router.post("/checkin/ack")
async def acknowledge_check_in() -> JSONResponse:
    from anchorwatch.main import get_engine

    acknowledged = get_engine().acknowledge_check_in()
    return _command_response(acknowledged, "" if acknowledged else "no check-in due")


@router.get("/checkin")
async def get_check_in_config() -> dict:
    from anchorwatch.main import get_engine

    return get_engine().check_in_config.to_dict()


@router.put("/checkin")
async def put_check_in_config(request: Request) -> JSONResponse:
    """Body: {"enabled": true, "intervalMinutes": 30, "gracePeriodSeconds": 60}."""
    from anchorwatch.main import get_engine

    body = await _read_json(request)
    if body is None:
        return _invalid_json()
    config = CheckInConfig.from_dict(body)
    if config.interval.total_seconds() <= 0 or config.grace_period.total_seconds() <= 0:
        return _command_response(False, "interval and grace period must be positive")
    get_engine().set_check_in_config(config)
    return _command_response(True, "")


@router.put("/sound")
async def put_alarm_sound(request: Request) -> JSONResponse:
    """Body: {"sound": "bell"}."""
    from anchorwatch.main import get_engine

    body = await _read_json(request)
    if body is None:
        return _invalid_json()
    sound = body.get("sound")
    accepted = isinstance(sound, str) and get_engine().set_alarm_sound(sound)
    return _command_response(accepted, "" if accepted else f"unknown alarm sound: {sound}")


@router.get("/track")
async def get_track(refresh: bool = Query(default=False)) -> JSONResponse:
    """Vessel track since the anchor was dropped."""
    from anchorwatch.main import get_engine

    engine = get_engine()
    if refresh:
        await engine.fetch_track_history()
    points = [p.to_dict() for p in engine.track_history]
    return JSONResponse(content={"points": points, "total": len(points)})
