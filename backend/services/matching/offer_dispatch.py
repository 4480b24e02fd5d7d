"""
Offer recording and fan-out for a broadcast attempt.

Handles the broadcast pattern for delivery jobs:
1. Rank eligible couriers around the pickup point
2. Record one offer per courier for the current attempt
3. Push the offer to every courier at once
"""

import logging
from typing import List

from django.db import IntegrityError, transaction

from deliveries.models import BroadcastOffer, DeliveryJob
from realtime.notifications import safe_notify
from .proximity import CourierMatch, find_nearby_couriers

logger = logging.getLogger(__name__)


def record_offers(job: DeliveryJob, matches: List[CourierMatch], sent_at) -> List[BroadcastOffer]:
    """
    Insert the ordered offer rows for the job's current attempt.
    
    Args:
        job: DeliveryJob that has just entered BROADCASTING
        matches: Ranked couriers from the proximity finder
        sent_at: Time the offers go out
    
    Returns:
        Created BroadcastOffer instances, closest first
    """
    offers = [
        BroadcastOffer(
            job=job,
            courier=match.courier,
            attempt=job.broadcast_attempts,
            order=order,
            distance_km=round(match.distance_km, 3),
            status='pending',
            sent_at=sent_at,
        )
        for order, match in enumerate(matches)
    ]
    try:
        with transaction.atomic():
            return BroadcastOffer.objects.bulk_create(offers)
    except IntegrityError:
        # Offers for this attempt were already recorded
        logger.warning("Offers for job %s attempt %s already exist", job.id, job.broadcast_attempts)
        return list(job.offers.filter(attempt=job.broadcast_attempts))


def broadcast_to_couriers(job: DeliveryJob, notifier, limit: int, sent_at) -> List[BroadcastOffer]:
    """
    Offer a broadcasting job to every eligible courier within its radius.
    
    Args:
        job: DeliveryJob in BROADCASTING
        notifier: Notification dispatcher
        limit: Maximum couriers to offer the job to
        sent_at: Time the offers go out
    
    Returns:
        Recorded offers (empty when nobody is in range)
    """
    matches = find_nearby_couriers(
        float(job.pickup_latitude),
        float(job.pickup_longitude),
        job.broadcast_radius_km,
        limit=limit,
    )
    offers = record_offers(job, matches, sent_at)

    if offers:
        safe_notify(notifier, "broadcast_offer", job, [offer.courier_id for offer in offers])

    logger.info(
        "Broadcast job %s attempt %s to %d couriers (radius=%skm, duration=%ss)",
        job.id, job.broadcast_attempts, len(offers),
        job.broadcast_radius_km, job.broadcast_duration_sec
    )
    return offers


def offered_courier_ids(job_id: int, exclude=None) -> List[int]:
    """Distinct couriers offered a job on any attempt."""
    courier_ids = (
        BroadcastOffer.objects
        .filter(job_id=job_id)
        .order_by('courier_id')
        .values_list('courier_id', flat=True)
        .distinct()
    )
    return [courier_id for courier_id in courier_ids if courier_id != exclude]
