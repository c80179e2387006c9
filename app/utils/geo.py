"""Great-circle distance and bounding boxes for discovery radius filtering."""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0088


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in kilometres between two points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    sin_dphi = math.sin(dphi / 2.0)
    sin_dlambda = math.sin(dlambda / 2.0)
    a = sin_dphi * sin_dphi + math.cos(phi1) * math.cos(phi2) * sin_dlambda * sin_dlambda
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_KM * c


def bounding_box(
    lat: float, lon: float, radius_km: float
) -> tuple[float, float, float | None, float | None]:
    """Return ``(min_lat, max_lat, min_lon, max_lon)`` enclosing the radius.

    Longitude bounds are ``None`` when the box touches a pole or wraps the
    antimeridian; callers then filter on latitude only and let the exact
    haversine check do the rest.
    """
    delta_lat = math.degrees(radius_km / EARTH_RADIUS_KM)
    min_lat = lat - delta_lat
    max_lat = lat + delta_lat
    if min_lat <= -90.0 or max_lat >= 90.0:
        return max(min_lat, -90.0), min(max_lat, 90.0), None, None

    delta_lon = math.degrees(
        radius_km / (EARTH_RADIUS_KM * math.cos(math.radians(lat)))
    )
    min_lon = lon - delta_lon
    max_lon = lon + delta_lon
    if min_lon < -180.0 or max_lon > 180.0:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lon, max_lon


def is_unset(lat: float | None, lon: float | None) -> bool:
    """A missing or (0, 0) coordinate means the user never shared a location."""
    return lat is None or lon is None or (lat == 0 and lon == 0)
