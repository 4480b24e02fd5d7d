"""
Acceptance arbiter: awards a broadcasting job to exactly one courier.

The award is one conditional UPDATE guarded by "still broadcasting, still
unassigned, deadline not passed". Whoever's UPDATE touches the row wins;
everyone else gets a precise reason for losing.
"""

import logging

from django.db import transaction
from django.utils import timezone

from couriers.services import get_courier
from deliveries.models import (
    BroadcastOffer,
    BroadcastStatus,
    DeliveryJob,
    JobStatus,
    TERMINAL_JOB_STATUSES,
)
from realtime.notifications import get_notifier, safe_notify
from services.matching import offered_courier_ids
from .exceptions import (
    AlreadyAcceptedError,
    BroadcastExpiredError,
    CourierNotEligibleError,
    CourierNotFoundError,
    InvalidStateError,
)
from .state_machine import get_job

logger = logging.getLogger(__name__)


def check_acceptable(job: DeliveryJob, now) -> None:
    """
    Raise the reason a job cannot be accepted at ``now``.

    Raises:
        AlreadyAcceptedError: A courier has already been awarded the job
        InvalidStateError: The job is terminal or not broadcasting
        BroadcastExpiredError: The broadcast deadline has passed
    """
    if job.broadcast_status == BroadcastStatus.ACCEPTED or job.assigned_courier_id is not None:
        raise AlreadyAcceptedError(f"Job {job.id} has already been accepted by another courier")

    if job.status in TERMINAL_JOB_STATUSES:
        raise InvalidStateError(
            f"Job {job.id} cannot be accepted: job is {job.status}",
            current_state=job.status,
        )

    if job.broadcast_status != BroadcastStatus.BROADCASTING:
        raise InvalidStateError(
            f"Job {job.id} is not currently broadcasting (broadcast is {job.broadcast_status})",
            current_state=job.broadcast_status,
        )

    # Checked against the clock, not the stored status: the expiry sweep
    # may not have run yet.
    if job.broadcast_end_time is None or now > job.broadcast_end_time:
        raise BroadcastExpiredError(f"The broadcast for job {job.id} has expired")


def accept_job(job_id, courier_id, *, now=None, notifier=None) -> DeliveryJob:
    """
    Accept a broadcasting job on behalf of a courier.

    Args:
        job_id: ID of the job to accept
        courier_id: ID of the accepting courier
        now: Current time (defaults to timezone.now())
        notifier: Notification dispatcher (defaults to the channel layer)

    Returns:
        The accepted DeliveryJob

    Raises:
        JobNotFoundError, CourierNotFoundError, CourierNotEligibleError,
        AlreadyAcceptedError, InvalidStateError, BroadcastExpiredError
    """
    now = now or timezone.now()
    notifier = notifier if notifier is not None else get_notifier()

    job = get_job(job_id)
    courier = get_courier(courier_id)
    if courier is None:
        raise CourierNotFoundError(f"Courier {courier_id} not found")

    if not courier.is_eligible:
        raise CourierNotEligibleError(
            f"Courier {courier_id} must be active, online and not suspended to accept deliveries"
        )

    check_acceptable(job, now)

    with transaction.atomic():
        updated = (
            DeliveryJob.objects
            .filter(
                pk=job_id,
                broadcast_status=BroadcastStatus.BROADCASTING,
                assigned_courier__isnull=True,
                broadcast_end_time__gte=now,
            )
            .exclude(status__in=TERMINAL_JOB_STATUSES)
            .update(
                assigned_courier=courier,
                assigned_at=now,
                accepted_at=now,
                broadcast_status=BroadcastStatus.ACCEPTED,
                status=JobStatus.ACCEPTED,
                updated_at=now,
            )
        )
        if updated:
            _settle_offers(job_id, courier.id, now)

    if not updated:
        # Lost the race; report what beat us
        job.refresh_from_db()
        check_acceptable(job, now)
        raise AlreadyAcceptedError(f"Job {job_id} has already been accepted by another courier")

    job.refresh_from_db()
    logger.info("Job %s accepted by courier %s", job.id, courier.id)

    # Tell every other courier who saw the offer that it is gone
    others = offered_courier_ids(job.id, exclude=courier.id)
    if others:
        safe_notify(notifier, "job_unavailable", job.id, others)

    safe_notify(
        notifier,
        "admin_alert",
        "delivery_accepted",
        title="Delivery Accepted",
        message=f"Job {job.id} accepted by {courier.name}",
        data={
            "job_id": job.id,
            "courier_id": courier.id,
            "accepted_at": job.accepted_at.isoformat(),
        },
    )
    return job


def _settle_offers(job_id, courier_id, now):
    """Mark the winner's offer accepted and withdraw the rest."""
    BroadcastOffer.objects.filter(
        job_id=job_id, courier_id=courier_id, status='pending'
    ).update(status='accepted', responded_at=now)

    BroadcastOffer.objects.filter(
        job_id=job_id, status='pending'
    ).exclude(courier_id=courier_id).update(status='withdrawn', responded_at=now)
