"""Position push endpoint.

Used when no SignalK server is configured: the display (or the drift
simulator) posts fixes here and they go through the in-process feed.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request, Response

from anchorwatch.core.models import PositionUpdate, parse_number, parse_position

router = APIRouter(prefix="/api/v1/feed")


def _json_response(content: dict, status_code: int) -> Response:
    return Response(
        content=json.dumps(content),
        status_code=status_code,
        media_type="application/json",
    )


@router.post("/position")
async def push_position(request: Request) -> Response:
    """Accept one fix: {"position": {"latitude", "longitude"}, "heading": deg}.

    A malformed position is still forwarded, as an unknown fix.
    """
    from anchorwatch.main import get_push_feed

    feed = get_push_feed()
    if feed is None:
        return _json_response(
            {"accepted": False, "error": "positions come from SignalK"}, 409,
        )

    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _json_response({"accepted": False, "error": "invalid JSON"}, 400)
    if not isinstance(body, dict):
        return _json_response({"accepted": False, "error": "invalid JSON"}, 400)

    update = PositionUpdate(
        position=parse_position(body.get("position")),
        heading=parse_number(body.get("heading")),
    )
    await feed.put(update)
    return _json_response({"accepted": True, "known": update.position is not None}, 202)
