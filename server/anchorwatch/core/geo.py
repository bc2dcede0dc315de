"""Great-circle helpers for drift distance and bearing.

All angles are in decimal degrees. Distances are in meters on a spherical
Earth with the mean radius below.
"""

from __future__ import annotations

import math

# Mean Earth radius in meters (for Haversine).
EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points."""
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    # Rounding can push a slightly above 1 for antipodal points.
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(a, 1.0)))


def normalize_degrees(angle: float) -> float:
    """Fold any angle into [0, 360)."""
    result = angle % 360.0
    # -1e-15 % 360 rounds to 360.0
    return 0.0 if result >= 360.0 else result


def initial_bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial true bearing from point 1 to point 2, in [0, 360)."""
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    y = math.sin(dlon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(dlon)
    return normalize_degrees(math.degrees(math.atan2(y, x)))


def destination_point(lat: float, lon: float, bearing_deg: float, distance_m: float) -> tuple[float, float]:
    """Point reached by travelling ``distance_m`` from (lat, lon) along ``bearing_deg``.

    Used to place the anchor from the vessel when the crew knows roughly
    which way and how far the rode runs.
    """
    rlat1 = math.radians(lat)
    rlon1 = math.radians(lon)
    bearing = math.radians(bearing_deg)
    angular = distance_m / EARTH_RADIUS_M

    rlat2 = math.asin(
        math.sin(rlat1) * math.cos(angular)
        + math.cos(rlat1) * math.sin(angular) * math.cos(bearing)
    )
    rlon2 = rlon1 + math.atan2(
        math.sin(bearing) * math.sin(angular) * math.cos(rlat1),
        math.cos(angular) - math.sin(rlat1) * math.sin(rlat2),
    )
    # Wrap longitude back into [-180, 180).
    lon2 = (math.degrees(rlon2) + 540.0) % 360.0 - 180.0
    return math.degrees(rlat2), lon2


def relative_bearing_deg(bearing_deg: float, heading_deg: float) -> float:
    """Bearing relative to the bow, in [0, 360)."""
    return normalize_degrees(bearing_deg - heading_deg)
