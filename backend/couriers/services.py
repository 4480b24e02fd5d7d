"""
Read-only access to the courier directory.

Dispatch never writes courier rows; everything here is a query.
"""

from typing import Optional, Tuple

from django.db.models import QuerySet

from common.utils.geo import get_service_area_coordinates
from couriers.models import Courier


def eligible_couriers() -> QuerySet:
    """Couriers that may receive offers: active, online, not suspended."""
    return Courier.objects.filter(
        is_active=True,
        is_online=True,
        is_suspended=False,
    )


def get_courier(courier_id) -> Optional[Courier]:
    return Courier.objects.filter(pk=courier_id).first()


def courier_position(courier: Courier) -> Tuple[float, float]:
    """
    Best known (lat, lon) for a courier.

    Falls back to the representative coordinate of the courier's service
    area when no live location has been reported.
    """
    if courier.has_location:
        return float(courier.last_latitude), float(courier.last_longitude)
    return get_service_area_coordinates(courier.service_area)
