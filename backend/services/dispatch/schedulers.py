"""
Periodic dispatch sweeps.

process_ready_broadcasts: start broadcasts for new (or retried) jobs.
process_expired_broadcasts: expire overdue broadcasts, then retry or escalate.

Both iterate jobs one at a time and funnel into the guarded transitions of
the state machine, so overlapping sweeps cannot double-process a job. A
failure on one job is logged and counted; the sweep moves on.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

from django.db.models import Q
from django.utils import timezone

from deliveries.models import (
    BroadcastStatus,
    DeliveryJob,
    JobStatus,
    TERMINAL_JOB_STATUSES,
)
from realtime.notifications import get_notifier
from .config import DispatchConfig, get_dispatch_config
from .exceptions import InvalidStateError, JobNotFoundError
from .state_machine import (
    escalate_to_manual,
    expire_broadcast,
    get_job,
    retry_broadcast,
    start_broadcast,
)

logger = logging.getLogger(__name__)


@dataclass
class ReadySweepResult:
    found: int = 0
    started: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self):
        return asdict(self)


@dataclass
class ExpirySweepResult:
    found: int = 0
    expired: int = 0
    retried: int = 0
    escalated: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self):
        return asdict(self)


# ===================== Ready Queue =====================

def ready_for_broadcast():
    """Jobs waiting for their next broadcast, highest priority and oldest first."""
    return (
        DeliveryJob.objects
        .filter(
            status=JobStatus.PENDING,
            broadcast_status=BroadcastStatus.NOT_STARTED,
            assigned_courier__isnull=True,
        )
        .order_by('-priority', 'created_at', 'id')
    )


def process_ready_broadcasts(
    *,
    now=None,
    notifier=None,
    config: Optional[DispatchConfig] = None,
) -> ReadySweepResult:
    """
    Start a broadcast for every job in the ready queue.

    Returns:
        ReadySweepResult with per-outcome counts
    """
    now = now or timezone.now()
    notifier = notifier if notifier is not None else get_notifier()
    config = config or get_dispatch_config()

    job_ids = list(ready_for_broadcast().values_list('id', flat=True))
    result = ReadySweepResult(found=len(job_ids))

    for job_id in job_ids:
        try:
            start_broadcast(job_id, now=now, notifier=notifier, config=config)
        except (InvalidStateError, JobNotFoundError) as exc:
            # Picked up by someone else since the scan
            result.skipped += 1
            logger.info("Skipping ready job %s: %s", job_id, exc)
        except Exception:
            result.failed += 1
            logger.exception("Failed to start broadcast for job %s", job_id)
        else:
            result.started += 1

    if job_ids:
        logger.info(
            "Ready sweep: %d found, %d started, %d skipped, %d failed",
            result.found, result.started, result.skipped, result.failed
        )
    return result


# ===================== Expiry / Retry =====================

def due_for_expiry(now):
    """
    Broadcasts past their end time, plus jobs left in EXPIRED by an
    interrupted sweep.
    """
    return (
        DeliveryJob.objects
        .filter(
            Q(broadcast_status=BroadcastStatus.BROADCASTING, broadcast_end_time__lt=now)
            | Q(broadcast_status=BroadcastStatus.EXPIRED)
        )
        .exclude(status__in=TERMINAL_JOB_STATUSES)
        .order_by('broadcast_end_time', 'id')
    )


def resolve_expired_broadcast(
    job_id,
    *,
    now=None,
    notifier=None,
    config: Optional[DispatchConfig] = None,
) -> str:
    """
    Retry an EXPIRED job with escalated parameters, or hand it over to
    manual assignment when no attempts remain.

    Returns:
        "retried" or "escalated"
    """
    now = now or timezone.now()
    notifier = notifier if notifier is not None else get_notifier()
    config = config or get_dispatch_config()

    job = get_job(job_id)
    if job.broadcast_attempts >= job.max_broadcast_attempts:
        escalate_to_manual(job_id, now=now, notifier=notifier)
        return "escalated"

    retry_broadcast(job_id, now=now, config=config)
    try:
        start_broadcast(job_id, now=now, notifier=notifier, config=config)
    except InvalidStateError as exc:
        # The ready scanner restarted it first
        logger.info("Job %s was restarted elsewhere: %s", job_id, exc)
    return "retried"


def process_expired_broadcasts(
    *,
    now=None,
    notifier=None,
    config: Optional[DispatchConfig] = None,
) -> ExpirySweepResult:
    """
    Expire every overdue broadcast, then retry or escalate each one.

    Returns:
        ExpirySweepResult with per-outcome counts
    """
    now = now or timezone.now()
    notifier = notifier if notifier is not None else get_notifier()
    config = config or get_dispatch_config()

    due = list(due_for_expiry(now).values_list('id', 'broadcast_status'))
    result = ExpirySweepResult(found=len(due))

    for job_id, broadcast_status in due:
        try:
            if broadcast_status == BroadcastStatus.BROADCASTING:
                expire_broadcast(job_id, now=now, notifier=notifier)
                result.expired += 1
            outcome = resolve_expired_broadcast(job_id, now=now, notifier=notifier, config=config)
        except (InvalidStateError, JobNotFoundError) as exc:
            # Already moved on (accepted, cancelled or handled by another sweep)
            result.skipped += 1
            logger.info("Skipping expired job %s: %s", job_id, exc)
            continue
        except Exception:
            result.failed += 1
            logger.exception("Failed to process expired broadcast for job %s", job_id)
            continue

        if outcome == "escalated":
            result.escalated += 1
        else:
            result.retried += 1

    if due:
        logger.info(
            "Expiry sweep: %d found, %d expired, %d retried, %d escalated, %d skipped, %d failed",
            result.found, result.expired, result.retried, result.escalated,
            result.skipped, result.failed
        )
    return result
