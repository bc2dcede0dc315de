"""Position helpers shared by the tests."""

from __future__ import annotations

from anchorwatch.core import geo
from anchorwatch.core.models import Position

# Anchorage used across tests.
ANCHOR = Position(latitude=10.0, longitude=-70.0)


def offset(meters: float, bearing: float = 45.0) -> Position:
    """A point ``meters`` from the anchorage along ``bearing``."""
    lat, lon = geo.destination_point(ANCHOR.latitude, ANCHOR.longitude, bearing, meters)
    return Position(latitude=lat, longitude=lon)
