"""
Broadcast state machine for delivery jobs.

NOT_STARTED -> BROADCASTING -> {ACCEPTED, EXPIRED}
EXPIRED -> NOT_STARTED (retry, escalated radius/duration)
EXPIRED -> MANUAL_ASSIGNMENT (attempts exhausted)

Every transition is a single conditional UPDATE on the job row. The row
count tells us whether we won; when it is zero the row is re-read only to
report what state it was actually in.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from django.db.models import F
from django.utils import timezone

from deliveries.models import (
    BroadcastOffer,
    BroadcastStatus,
    DeliveryJob,
    TERMINAL_JOB_STATUSES,
)
from realtime.notifications import get_notifier, safe_notify
from services.matching import broadcast_to_couriers
from .config import DispatchConfig, get_dispatch_config
from .exceptions import InvalidStateError, JobNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    """Outcome of starting a broadcast attempt."""
    job: DeliveryJob
    offers: List[BroadcastOffer] = field(default_factory=list)

    @property
    def eligible_couriers(self) -> int:
        return len(self.offers)


# ===================== Helpers =====================

def get_job(job_id) -> DeliveryJob:
    try:
        return DeliveryJob.objects.get(pk=job_id)
    except DeliveryJob.DoesNotExist:
        raise JobNotFoundError(f"Delivery job {job_id} not found")


def compare_and_set(job_id, expected_status: str, updates: dict, now, **conditions) -> bool:
    """
    Apply ``updates`` only if the job is still in ``expected_status`` and
    matches ``conditions``. Terminal jobs never match.

    Returns True if this caller performed the transition.
    """
    updated = (
        DeliveryJob.objects
        .filter(pk=job_id, broadcast_status=expected_status, **conditions)
        .exclude(status__in=TERMINAL_JOB_STATUSES)
        .update(updated_at=now, **updates)
    )
    return updated == 1


def raise_rejected(job_id, operation: str, detail: Optional[str] = None):
    """Re-read a job after a lost transition and raise with its real state."""
    job = DeliveryJob.objects.filter(pk=job_id).first()
    if job is None:
        raise JobNotFoundError(f"Delivery job {job_id} not found")
    if job.is_terminal:
        raise InvalidStateError(
            f"Cannot {operation} job {job_id}: job is {job.status}",
            current_state=job.status,
        )
    message = f"Cannot {operation} job {job_id} while broadcast is {job.broadcast_status}"
    if detail:
        message = f"{message} ({detail})"
    raise InvalidStateError(message, current_state=job.broadcast_status)


# ===================== Transitions =====================

def start_broadcast(
    job_id,
    *,
    now=None,
    notifier=None,
    config: Optional[DispatchConfig] = None,
) -> BroadcastResult:
    """
    Move a job from NOT_STARTED to BROADCASTING and offer it to nearby couriers.

    Args:
        job_id: ID of the job to broadcast
        now: Current time (defaults to timezone.now())
        notifier: Notification dispatcher (defaults to the channel layer)
        config: Dispatch configuration

    Returns:
        BroadcastResult with the updated job and recorded offers

    Raises:
        JobNotFoundError: If the job does not exist
        InvalidStateError: If the job is not NOT_STARTED, is assigned,
            has no attempts left or is terminal
    """
    now = now or timezone.now()
    notifier = notifier if notifier is not None else get_notifier()
    config = config or get_dispatch_config()

    job = get_job(job_id)
    end_time = now + timedelta(seconds=job.broadcast_duration_sec)

    started = compare_and_set(
        job_id,
        BroadcastStatus.NOT_STARTED,
        {
            "broadcast_status": BroadcastStatus.BROADCASTING,
            "broadcast_start_time": now,
            "broadcast_end_time": end_time,
            "broadcast_attempts": F("broadcast_attempts") + 1,
        },
        now,
        broadcast_attempts=job.broadcast_attempts,
        broadcast_attempts__lt=F("max_broadcast_attempts"),
        broadcast_duration_sec=job.broadcast_duration_sec,
        assigned_courier__isnull=True,
    )
    if not started:
        detail = None
        if job.assigned_courier_id is not None:
            detail = f"already assigned to courier {job.assigned_courier_id}"
        elif job.broadcast_attempts >= job.max_broadcast_attempts:
            detail = f"all {job.max_broadcast_attempts} attempts used"
        raise_rejected(job_id, "start broadcast for", detail)

    job.refresh_from_db()

    offers: List[BroadcastOffer] = []
    try:
        offers = broadcast_to_couriers(job, notifier, config.max_couriers_per_broadcast, now)
    except Exception:
        # The job stays BROADCASTING and will expire and retry as usual
        logger.exception("Failed to fan out broadcast for job %s", job.id)

    safe_notify(
        notifier,
        "admin_alert",
        "broadcast_started",
        title="Broadcast Started",
        message=f"Job {job.id} offered to {len(offers)} couriers",
        data={
            "job_id": job.id,
            "attempt": job.broadcast_attempts,
            "eligible_couriers": len(offers),
            "broadcast_end_time": job.broadcast_end_time.isoformat(),
        },
    )

    return BroadcastResult(job=job, offers=offers)


def expire_broadcast(job_id, *, now=None, notifier=None) -> DeliveryJob:
    """
    Move a job from BROADCASTING to EXPIRED once its end time has passed.

    Pending offers of the attempt are closed and their couriers told the
    offer timed out.
    """
    now = now or timezone.now()
    notifier = notifier if notifier is not None else get_notifier()

    expired = compare_and_set(
        job_id,
        BroadcastStatus.BROADCASTING,
        {"broadcast_status": BroadcastStatus.EXPIRED},
        now,
        broadcast_end_time__lt=now,
        assigned_courier__isnull=True,
    )
    if not expired:
        job = DeliveryJob.objects.filter(pk=job_id).first()
        detail = None
        if job is not None and job.broadcast_status == BroadcastStatus.BROADCASTING and job.broadcast_end_time:
            detail = f"running until {job.broadcast_end_time.isoformat()}"
        raise_rejected(job_id, "expire broadcast for", detail)

    job = get_job(job_id)
    pending = job.offers.filter(attempt=job.broadcast_attempts, status="pending")
    courier_ids = list(pending.values_list("courier_id", flat=True))
    pending.update(status="expired", responded_at=now)

    if courier_ids:
        safe_notify(notifier, "broadcast_expired", job, courier_ids)

    logger.info("Broadcast for job %s expired after attempt %s", job.id, job.broadcast_attempts)
    return job


def retry_broadcast(job_id, *, now=None, config: Optional[DispatchConfig] = None) -> DeliveryJob:
    """
    Move an EXPIRED job back to NOT_STARTED with a wider radius and a
    longer duration, both capped by configuration.
    """
    now = now or timezone.now()
    config = config or get_dispatch_config()

    job = get_job(job_id)
    radius = config.escalate_radius(job.broadcast_radius_km)
    duration = config.escalate_duration(job.broadcast_duration_sec)

    retried = compare_and_set(
        job_id,
        BroadcastStatus.EXPIRED,
        {
            "broadcast_status": BroadcastStatus.NOT_STARTED,
            "broadcast_radius_km": radius,
            "broadcast_duration_sec": duration,
            "broadcast_start_time": None,
            "broadcast_end_time": None,
        },
        now,
        broadcast_attempts=job.broadcast_attempts,
        broadcast_attempts__lt=F("max_broadcast_attempts"),
    )
    if not retried:
        detail = None
        if job.broadcast_attempts >= job.max_broadcast_attempts:
            detail = f"all {job.max_broadcast_attempts} attempts used"
        raise_rejected(job_id, "retry broadcast for", detail)

    logger.info(
        "Retrying job %s: radius %skm -> %skm, duration %ss -> %ss",
        job.id, job.broadcast_radius_km, radius, job.broadcast_duration_sec, duration
    )
    return get_job(job_id)


def escalate_to_manual(job_id, *, now=None, notifier=None) -> DeliveryJob:
    """
    Move an EXPIRED job with no attempts left to MANUAL_ASSIGNMENT and
    alert the admins.
    """
    now = now or timezone.now()
    notifier = notifier if notifier is not None else get_notifier()

    escalated = compare_and_set(
        job_id,
        BroadcastStatus.EXPIRED,
        {"broadcast_status": BroadcastStatus.MANUAL_ASSIGNMENT},
        now,
        broadcast_attempts__gte=F("max_broadcast_attempts"),
    )
    if not escalated:
        raise_rejected(job_id, "escalate", "attempts remain")

    job = get_job(job_id)
    safe_notify(
        notifier,
        "admin_alert",
        "broadcast_failed",
        title="Broadcast Failed",
        message=f"Broadcast failed for delivery after {job.broadcast_attempts} attempts",
        data={
            "job_id": job.id,
            "reason": "max_attempts_reached",
            "attempts": job.broadcast_attempts,
        },
    )

    logger.warning(
        "Job %s needs manual assignment after %s broadcast attempts",
        job.id, job.broadcast_attempts
    )
    return job
