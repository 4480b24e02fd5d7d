"""Common utility functions."""

from .geo import (
    calculate_distance,
    get_service_area_coordinates,
    parse_location,
    SERVICE_AREA_COORDINATES,
)

__all__ = [
    "calculate_distance",
    "get_service_area_coordinates",
    "parse_location",
    "SERVICE_AREA_COORDINATES",
]
