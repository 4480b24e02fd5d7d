"""
Courier matching and offer fan-out.

This module handles:
    - Ranking eligible couriers around a pickup point
    - Recording broadcast offers per attempt
    - Pushing offers to couriers
"""

from .proximity import CourierMatch, find_nearby_couriers
from .offer_dispatch import broadcast_to_couriers, offered_courier_ids, record_offers

__all__ = [
    "CourierMatch",
    "find_nearby_couriers",
    "broadcast_to_couriers",
    "offered_courier_ids",
    "record_offers",
]
