"""
Rank eligible couriers by distance to a pickup point.

A linear scan over the eligible couriers with haversine distance; couriers
without a live location are placed at their service area's coordinate.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from common.utils import calculate_distance
from couriers.models import Courier
from couriers.services import courier_position, eligible_couriers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CourierMatch:
    courier: Courier
    distance_km: float

    @property
    def courier_id(self) -> int:
        return self.courier.id


def find_nearby_couriers(
    latitude: float,
    longitude: float,
    radius_km: float,
    limit: Optional[int] = None,
) -> List[CourierMatch]:
    """
    Find eligible couriers within ``radius_km`` of a point.
    
    Args:
        latitude: Origin latitude
        longitude: Origin longitude
        radius_km: Search radius in kilometers
        limit: Maximum number of couriers to return (None for no cap)
    
    Returns:
        CourierMatch list sorted by distance, then courier id
    """
    candidates: List[CourierMatch] = []
    for courier in eligible_couriers():
        courier_lat, courier_lon = courier_position(courier)
        distance = calculate_distance(latitude, longitude, courier_lat, courier_lon)
        # Only keep couriers inside the radius
        if distance <= float(radius_km):
            candidates.append(CourierMatch(courier=courier, distance_km=distance))

    # Closest first, equidistant couriers by id
    candidates.sort(key=lambda match: (match.distance_km, match.courier.id))

    if limit is not None:
        candidates = candidates[:limit]

    logger.debug(
        "Found %d couriers within %.2fkm of (%s, %s)",
        len(candidates), float(radius_km), latitude, longitude
    )
    return candidates
