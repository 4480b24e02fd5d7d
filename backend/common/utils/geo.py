"""
Geographic utility functions.

This module provides the geospatial calculations used by courier matching.
"""

from math import radians, cos, sin, asin, sqrt
from typing import Dict, Optional, Tuple

from django.conf import settings

EARTH_RADIUS_KM = 6371.0

DEFAULT_SERVICE_AREA = "Lefkosa"

# Representative coordinate for each service area, used when a courier has
# never reported a live location.
SERVICE_AREA_COORDINATES: Dict[str, Tuple[float, float]] = {
    "Gonyeli": (35.2167, 33.3333),
    "Kucuk": (35.1833, 33.3667),
    "Lefkosa": (35.1856, 33.3823),
    "Famagusta": (35.1167, 33.9167),
    "Kyrenia": (35.3333, 33.3167),
}


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in kilometers using Haversine formula.
    
    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point
    
    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return c * EARTH_RADIUS_KM


def get_service_area_coordinates(area: Optional[str]) -> Tuple[float, float]:
    """
    Return the representative (lat, lon) for a service area.

    Unknown or empty areas resolve to the default area so callers always
    get a usable coordinate.
    """
    coordinates = getattr(settings, "DISPATCH_SERVICE_AREA_COORDINATES", SERVICE_AREA_COORDINATES)
    default_area = getattr(settings, "DISPATCH_DEFAULT_SERVICE_AREA", DEFAULT_SERVICE_AREA)
    if area and area in coordinates:
        return tuple(coordinates[area])
    return tuple(coordinates[default_area])


def parse_location(location) -> Optional[Tuple[float, float]]:
    """
    Normalize a location given as (lat, lon) or {"lat"/"latitude", "lng"/"lon"/"longitude"}.

    Returns None when the value cannot be read as a coordinate pair.
    """
    if location is None:
        return None

    if isinstance(location, dict):
        lat = location.get("lat", location.get("latitude"))
        lon = location.get("lng", location.get("lon", location.get("longitude")))
    else:
        try:
            lat, lon = location
        except (TypeError, ValueError):
            return None

    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return None

    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return lat, lon
