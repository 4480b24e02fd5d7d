"""
Dispatch orchestrator - the public entry point for intake, the courier app
and admin tools.

This module handles:
    - Creating jobs and starting their first broadcast
    - Courier acceptance
    - Manual (admin) assignment
    - Status snapshots and courier-facing job lists
    - Broadcast statistics
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from common.utils import calculate_distance, parse_location
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
from .acceptance import accept_job
from .config import DispatchConfig, get_dispatch_config
from .exceptions import (
    CourierNotEligibleError,
    CourierNotFoundError,
    DispatchValidationError,
    InvalidStateError,
)
from .schedulers import process_expired_broadcasts, process_ready_broadcasts
from .state_machine import get_job, start_broadcast

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Result object for dispatch operations."""
    success: bool
    job: Optional[DeliveryJob] = None
    message: str = ""
    extra: Optional[Dict[str, Any]] = None


@dataclass
class DispatchStatus:
    """Read-only snapshot of a job's dispatch state."""
    job_id: int
    status: str
    broadcast_status: str
    broadcast_attempts: int
    max_broadcast_attempts: int
    broadcast_radius_km: float
    broadcast_duration_sec: int
    broadcast_start_time: Optional[datetime]
    broadcast_end_time: Optional[datetime]
    assigned_courier_id: Optional[int]
    assigned_at: Optional[datetime]
    accepted_at: Optional[datetime]
    offered_couriers: int
    seconds_remaining: Optional[int]
    can_be_accepted: bool


class DispatchOrchestrator:
    """
    Facade over the broadcast engine.

    Args:
        notifier: Notification dispatcher (defaults to the channel layer)
        clock: Zero-argument callable returning the current time
        config: Dispatch configuration (defaults to settings)
    """

    def __init__(
        self,
        notifier=None,
        clock: Optional[Callable[[], datetime]] = None,
        config: Optional[DispatchConfig] = None,
    ):
        self.notifier = notifier if notifier is not None else get_notifier()
        self.clock = clock or timezone.now
        self.config = config or get_dispatch_config()

    # ===================== Intake =====================

    def create_and_dispatch(self, job_data: Dict[str, Any]) -> DispatchResult:
        """
        Create a delivery job and start dispatching it.

        With ``auto_dispatch`` (the default) the first broadcast starts
        immediately. Otherwise the job is assigned straight to
        ``assigned_courier_id`` and never broadcasts.

        Raises:
            DispatchValidationError: If the job data is invalid
            CourierNotFoundError: If the manual courier does not exist
        """
        from deliveries.serializers import DeliveryJobCreateSerializer

        serializer = DeliveryJobCreateSerializer(data=job_data)
        if not serializer.is_valid():
            raise DispatchValidationError(serializer.errors)

        data = dict(serializer.validated_data)
        auto_dispatch = data.pop('auto_dispatch', True)
        courier_id = data.pop('assigned_courier_id', None)

        if not auto_dispatch:
            courier = self._get_assignable_courier(courier_id)
            now = self.clock()
            # Inserted already assigned; never NOT_STARTED
            job = DeliveryJob.objects.create(
                **data,
                assigned_courier=courier,
                assigned_at=now,
                broadcast_status=BroadcastStatus.MANUAL_ASSIGNMENT,
                status=JobStatus.ACCEPTED,
            )
            logger.info("Created job %s assigned to courier %s", job.id, courier.id)
            self._notify_manual_assignment(job, courier)
            return DispatchResult(
                success=True,
                job=job,
                message="Delivery assigned manually.",
                extra={"auto_dispatch": False, "eligible_couriers": 0},
            )

        job = DeliveryJob.objects.create(**data)
        logger.info("Created job %s (priority=%s)", job.id, job.get_priority_display())

        try:
            broadcast = start_broadcast(
                job.id, now=self.clock(), notifier=self.notifier, config=self.config
            )
        except InvalidStateError as exc:
            # The ready scanner got to it first
            logger.info("Job %s already picked up: %s", job.id, exc)
            job.refresh_from_db()
            return DispatchResult(
                success=True,
                job=job,
                message="Broadcast already in progress.",
                extra={"auto_dispatch": True},
            )

        eligible = broadcast.eligible_couriers
        return DispatchResult(
            success=True,
            job=broadcast.job,
            message=(
                "Notifying nearby couriers..."
                if eligible
                else "No couriers found nearby yet. We will keep searching."
            ),
            extra={
                "auto_dispatch": True,
                "eligible_couriers": eligible,
                "broadcast_end_time": broadcast.job.broadcast_end_time,
            },
        )

    # ===================== Courier Operations =====================

    def accept(self, job_id, courier_id) -> DeliveryJob:
        """Accept a broadcasting job for a courier (see acceptance.accept_job)."""
        return accept_job(job_id, courier_id, now=self.clock(), notifier=self.notifier)

    def get_active_for_courier(self, courier_id, location=None) -> List[DeliveryJob]:
        """
        List jobs a courier can accept right now.

        Args:
            courier_id: Requesting courier
            location: Optional (lat, lon) or {"lat", "lng"} to narrow by distance

        Returns:
            DeliveryJob list; each job carries ``distance_km`` (None without a
            usable location). With a location the list is limited to the
            courier view radius and sorted by distance.

        Raises:
            CourierNotFoundError: If the courier does not exist
        """
        if get_courier(courier_id) is None:
            raise CourierNotFoundError(f"Courier {courier_id} not found")

        now = self.clock()
        jobs = list(
            DeliveryJob.objects
            .filter(
                status=JobStatus.PENDING,
                broadcast_status=BroadcastStatus.BROADCASTING,
                assigned_courier__isnull=True,
                broadcast_end_time__gte=now,
            )
            .order_by('-priority', 'created_at', 'id')
        )

        point = parse_location(location)
        if point is None:
            for job in jobs:
                job.distance_km = None
            return jobs

        nearby = []
        for job in jobs:
            job.distance_km = calculate_distance(
                point[0], point[1], float(job.pickup_latitude), float(job.pickup_longitude)
            )
            if job.distance_km <= self.config.courier_view_radius_km:
                nearby.append(job)

        nearby.sort(key=lambda job: job.distance_km)
        return nearby

    # ===================== Admin Operations =====================

    def manual_assign(self, job_id, courier_id) -> DeliveryJob:
        """
        Assign a job directly to a courier, bypassing the broadcast.

        Valid from any state that has not produced an assignment. A running
        broadcast is closed and its couriers told the job is gone.

        Raises:
            JobNotFoundError, CourierNotFoundError, CourierNotEligibleError,
            InvalidStateError
        """
        now = self.clock()
        job = get_job(job_id)
        courier = self._get_assignable_courier(courier_id)

        with transaction.atomic():
            updated = (
                DeliveryJob.objects
                .filter(pk=job_id, assigned_courier__isnull=True)
                .exclude(broadcast_status=BroadcastStatus.ACCEPTED)
                .exclude(status__in=TERMINAL_JOB_STATUSES)
                .update(
                    assigned_courier=courier,
                    assigned_at=now,
                    broadcast_status=BroadcastStatus.MANUAL_ASSIGNMENT,
                    status=JobStatus.ACCEPTED,
                    updated_at=now,
                )
            )
            if updated:
                BroadcastOffer.objects.filter(job_id=job_id, status='pending').update(
                    status='withdrawn', responded_at=now
                )

        if not updated:
            job.refresh_from_db()
            if job.assigned_courier_id is not None:
                raise InvalidStateError(
                    f"Cannot assign job {job_id}: already assigned to courier "
                    f"{job.assigned_courier_id} (broadcast is {job.broadcast_status})",
                    current_state=job.broadcast_status,
                )
            if job.is_terminal:
                raise InvalidStateError(
                    f"Cannot assign job {job_id}: job is {job.status}",
                    current_state=job.status,
                )
            raise InvalidStateError(
                f"Cannot assign job {job_id} while broadcast is {job.broadcast_status}",
                current_state=job.broadcast_status,
            )

        job.refresh_from_db()
        logger.info("Job %s manually assigned to courier %s", job.id, courier.id)

        others = offered_courier_ids(job.id, exclude=courier.id)
        if others:
            safe_notify(self.notifier, "job_unavailable", job.id, others)

        self._notify_manual_assignment(job, courier)
        return job

    def _notify_manual_assignment(self, job, courier):
        safe_notify(
            self.notifier,
            "admin_alert",
            "delivery_manually_assigned",
            title="Delivery Manually Assigned",
            message="Delivery has been manually assigned to courier",
            data={
                "job_id": job.id,
                "courier_id": courier.id,
                "assigned_at": job.assigned_at.isoformat(),
            },
        )

    def query_status(self, job_id) -> DispatchStatus:
        """Read-only snapshot of a job's dispatch state."""
        job = get_job(job_id)
        now = self.clock()

        broadcasting = job.broadcast_status == BroadcastStatus.BROADCASTING
        seconds_remaining = None
        if broadcasting and job.broadcast_end_time is not None:
            seconds_remaining = max(0, int((job.broadcast_end_time - now).total_seconds()))

        can_be_accepted = (
            broadcasting
            and job.broadcast_end_time is not None
            and now <= job.broadcast_end_time
            and job.assigned_courier_id is None
        )

        return DispatchStatus(
            job_id=job.id,
            status=job.status,
            broadcast_status=job.broadcast_status,
            broadcast_attempts=job.broadcast_attempts,
            max_broadcast_attempts=job.max_broadcast_attempts,
            broadcast_radius_km=job.broadcast_radius_km,
            broadcast_duration_sec=job.broadcast_duration_sec,
            broadcast_start_time=job.broadcast_start_time,
            broadcast_end_time=job.broadcast_end_time,
            assigned_courier_id=job.assigned_courier_id,
            assigned_at=job.assigned_at,
            accepted_at=job.accepted_at,
            offered_couriers=len(offered_courier_ids(job.id)),
            seconds_remaining=seconds_remaining,
            can_be_accepted=can_be_accepted,
        )

    def broadcast_stats(self) -> Dict[str, Any]:
        """Counts of jobs per broadcast status plus live/overdue broadcasts."""
        now = self.clock()
        by_status = {
            row['broadcast_status']: row['count']
            for row in DeliveryJob.objects.values('broadcast_status').annotate(count=Count('id'))
        }
        broadcasting = DeliveryJob.objects.filter(broadcast_status=BroadcastStatus.BROADCASTING)
        return {
            "by_status": {value: by_status.get(value, 0) for value in BroadcastStatus.values},
            "active_count": broadcasting.filter(broadcast_end_time__gte=now).count(),
            "expired_count": broadcasting.filter(broadcast_end_time__lt=now).count(),
            "total": sum(by_status.values()),
        }

    # ===================== Sweeps =====================

    def process_ready_broadcasts(self):
        return process_ready_broadcasts(now=self.clock(), notifier=self.notifier, config=self.config)

    def process_expired_broadcasts(self):
        return process_expired_broadcasts(now=self.clock(), notifier=self.notifier, config=self.config)

    # ===================== Helpers =====================

    def _get_assignable_courier(self, courier_id):
        courier = get_courier(courier_id)
        if courier is None:
            raise CourierNotFoundError(f"Courier {courier_id} not found")
        if not courier.is_active or courier.is_suspended:
            raise CourierNotEligibleError(f"Courier {courier_id} is inactive or suspended")
        return courier


# ===================== Module-level API =====================

def create_and_dispatch(job_data: Dict[str, Any]) -> DispatchResult:
    return DispatchOrchestrator().create_and_dispatch(job_data)


def accept_delivery(job_id, courier_id) -> DeliveryJob:
    return DispatchOrchestrator().accept(job_id, courier_id)


def manual_assign(job_id, courier_id) -> DeliveryJob:
    return DispatchOrchestrator().manual_assign(job_id, courier_id)


def query_status(job_id) -> DispatchStatus:
    return DispatchOrchestrator().query_status(job_id)


def get_active_for_courier(courier_id, location=None) -> List[DeliveryJob]:
    return DispatchOrchestrator().get_active_for_courier(courier_id, location)


def broadcast_stats() -> Dict[str, Any]:
    return DispatchOrchestrator().broadcast_stats()
