"""Great-circle distance for geofence checks."""

from __future__ import annotations

import math

# Mean Earth radius (WGS84 based), metres
EARTH_RADIUS_METERS = 6_371_008.8


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise ValueError for non-finite or out-of-range coordinates."""
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ValueError("Coordinates must be finite numbers")
    if not -90 <= latitude <= 90:
        raise ValueError(f"Latitude {latitude} out of range")
    if not -180 <= longitude <= 180:
        raise ValueError(f"Longitude {longitude} out of range")


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in metres between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def within_radius(
    latitude: float,
    longitude: float,
    center_latitude: float,
    center_longitude: float,
    radius_meters: float,
) -> tuple[bool, float]:
    """Check a position against a circular fence.

    Returns (inside, distance_meters).
    """
    distance = haversine_meters(latitude, longitude, center_latitude, center_longitude)
    return distance <= radius_meters, distance
