from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.test import TestCase
from django.utils import timezone

from deliveries.models import BroadcastStatus, DeliveryJob, JobStatus, Priority
from services.dispatch import (
	InvalidStateError,
	accept_job,
	process_expired_broadcasts,
	process_ready_broadcasts,
	start_broadcast,
)
from services.dispatch.schedulers import resolve_expired_broadcast as real_resolve
from services.dispatch.state_machine import start_broadcast as real_start_broadcast

from .helpers import make_courier, make_job


class ReadyQueueTests(TestCase):
	def setUp(self):
		self.now = timezone.now()
		self.notifier = MagicMock()

	def test_starts_every_ready_job(self):
		jobs = [make_job(), make_job()]

		result = process_ready_broadcasts(now=self.now, notifier=self.notifier)

		self.assertEqual(result.as_dict(), {'found': 2, 'started': 2, 'skipped': 0, 'failed': 0})
		for job in jobs:
			job.refresh_from_db()
			self.assertEqual(job.broadcast_status, BroadcastStatus.BROADCASTING)
			self.assertEqual(job.broadcast_attempts, 1)

	def test_ignores_jobs_that_are_not_ready(self):
		make_job(broadcast_status=BroadcastStatus.BROADCASTING, broadcast_attempts=1)
		make_job(status=JobStatus.CANCELLED)
		make_job(broadcast_status=BroadcastStatus.MANUAL_ASSIGNMENT)

		result = process_ready_broadcasts(now=self.now, notifier=self.notifier)

		self.assertEqual(result.found, 0)

	@patch('services.dispatch.schedulers.start_broadcast')
	def test_highest_priority_then_oldest_first(self, mock_start):
		old_normal = make_job(priority=Priority.NORMAL)
		new_urgent = make_job(priority=Priority.URGENT)
		new_normal = make_job(priority=Priority.NORMAL)
		low = make_job(priority=Priority.LOW)
		DeliveryJob.objects.filter(pk=old_normal.pk).update(created_at=self.now - timedelta(minutes=10))
		DeliveryJob.objects.filter(pk=new_normal.pk).update(created_at=self.now - timedelta(minutes=1))

		process_ready_broadcasts(now=self.now, notifier=self.notifier)

		started = [call[0][0] for call in mock_start.call_args_list]
		self.assertEqual(started, [new_urgent.id, old_normal.id, new_normal.id, low.id])

	def test_one_failing_job_does_not_stop_the_scan(self):
		broken = make_job(priority=Priority.URGENT)
		healthy = make_job()

		def start(job_id, **kwargs):
			if job_id == broken.id:
				raise RuntimeError('boom')
			return real_start_broadcast(job_id, **kwargs)

		with patch('services.dispatch.schedulers.start_broadcast', side_effect=start):
			result = process_ready_broadcasts(now=self.now, notifier=self.notifier)

		self.assertEqual(result.started, 1)
		self.assertEqual(result.failed, 1)
		healthy.refresh_from_db()
		self.assertEqual(healthy.broadcast_status, BroadcastStatus.BROADCASTING)

	def test_job_started_elsewhere_is_skipped(self):
		job = make_job()

		def start(job_id, **kwargs):
			# Someone else wins the start between the scan and our attempt
			real_start_broadcast(job_id, **kwargs)
			return real_start_broadcast(job_id, **kwargs)

		with patch('services.dispatch.schedulers.start_broadcast', side_effect=start):
			result = process_ready_broadcasts(now=self.now, notifier=self.notifier)

		self.assertEqual(result.skipped, 1)
		job.refresh_from_db()
		self.assertEqual(job.broadcast_attempts, 1)


class ExpirySweepTests(TestCase):
	def setUp(self):
		self.now = timezone.now()
		self.notifier = MagicMock()

	def test_escalation_through_all_attempts_ends_in_manual_assignment(self):
		job = make_job(broadcast_radius_km=5, broadcast_duration_sec=60, max_broadcast_attempts=3)
		radii, durations = [], []

		now = self.now
		process_ready_broadcasts(now=now, notifier=self.notifier)
		for _ in range(3):
			job.refresh_from_db()
			self.assertEqual(job.broadcast_status, BroadcastStatus.BROADCASTING)
			radii.append(job.broadcast_radius_km)
			durations.append(job.broadcast_duration_sec)
			now = job.broadcast_end_time + timedelta(seconds=1)
			process_expired_broadcasts(now=now, notifier=self.notifier)

		job.refresh_from_db()
		self.assertEqual(radii, [5, 7.5, 11.25])
		self.assertEqual(durations, [60, 72, 86])
		self.assertEqual(job.broadcast_status, BroadcastStatus.MANUAL_ASSIGNMENT)
		self.assertEqual(job.broadcast_attempts, 3)
		self.assertIsNone(job.assigned_courier)
		alerts = [call[0][0] for call in self.notifier.admin_alert.call_args_list]
		self.assertEqual(alerts.count('broadcast_failed'), 1)

	def test_sweep_result_counts(self):
		retry = make_job(max_broadcast_attempts=3)
		last = make_job(max_broadcast_attempts=1)
		start_broadcast(retry.id, now=self.now, notifier=self.notifier)
		start_broadcast(last.id, now=self.now, notifier=self.notifier)

		result = process_expired_broadcasts(now=self.now + timedelta(seconds=61), notifier=self.notifier)

		self.assertEqual(
			result.as_dict(),
			{'found': 2, 'expired': 2, 'retried': 1, 'escalated': 1, 'skipped': 0, 'failed': 0},
		)
		retry.refresh_from_db()
		last.refresh_from_db()
		self.assertEqual(retry.broadcast_status, BroadcastStatus.BROADCASTING)
		self.assertEqual(retry.broadcast_attempts, 2)
		self.assertEqual(last.broadcast_status, BroadcastStatus.MANUAL_ASSIGNMENT)

	def test_running_broadcast_is_left_alone(self):
		job = make_job()
		start_broadcast(job.id, now=self.now, notifier=self.notifier)

		result = process_expired_broadcasts(now=self.now + timedelta(seconds=30), notifier=self.notifier)

		self.assertEqual(result.found, 0)
		job.refresh_from_db()
		self.assertEqual(job.broadcast_status, BroadcastStatus.BROADCASTING)

	def test_accepted_job_is_never_expired(self):
		courier = make_courier('Near', 35.1900, 33.3850)
		job = make_job()
		start_broadcast(job.id, now=self.now, notifier=self.notifier)
		accept_job(job.id, courier.id, now=self.now, notifier=self.notifier)

		result = process_expired_broadcasts(now=self.now + timedelta(seconds=120), notifier=self.notifier)

		self.assertEqual(result.found, 0)
		job.refresh_from_db()
		self.assertEqual(job.broadcast_status, BroadcastStatus.ACCEPTED)

	def test_cancelled_job_is_skipped(self):
		job = make_job()
		start_broadcast(job.id, now=self.now, notifier=self.notifier)
		DeliveryJob.objects.filter(pk=job.pk).update(status=JobStatus.CANCELLED)

		result = process_expired_broadcasts(now=self.now + timedelta(seconds=61), notifier=self.notifier)

		self.assertEqual(result.found, 0)
		job.refresh_from_db()
		self.assertEqual(job.broadcast_status, BroadcastStatus.BROADCASTING)

	def test_job_left_in_expired_is_recovered(self):
		job = make_job(
			broadcast_status=BroadcastStatus.EXPIRED,
			broadcast_attempts=1,
			broadcast_radius_km=5,
			broadcast_duration_sec=60,
		)

		result = process_expired_broadcasts(now=self.now, notifier=self.notifier)

		self.assertEqual(result.retried, 1)
		self.assertEqual(result.expired, 0)
		job.refresh_from_db()
		self.assertEqual(job.broadcast_status, BroadcastStatus.BROADCASTING)
		self.assertEqual(job.broadcast_attempts, 2)
		self.assertEqual(job.broadcast_radius_km, 7.5)

	def test_second_sweep_at_same_time_does_nothing(self):
		job = make_job()
		start_broadcast(job.id, now=self.now, notifier=self.notifier)
		later = self.now + timedelta(seconds=61)

		first = process_expired_broadcasts(now=later, notifier=self.notifier)
		second = process_expired_broadcasts(now=later, notifier=self.notifier)

		self.assertEqual(first.retried, 1)
		self.assertEqual(second.found, 0)
		job.refresh_from_db()
		self.assertEqual(job.broadcast_attempts, 2)

	def test_one_failing_job_does_not_stop_the_sweep(self):
		broken = make_job()
		healthy = make_job()
		start_broadcast(broken.id, now=self.now, notifier=self.notifier)
		start_broadcast(healthy.id, now=self.now, notifier=self.notifier)

		def resolve(job_id, **kwargs):
			if job_id == broken.id:
				raise RuntimeError('boom')
			return real_resolve(job_id, **kwargs)

		with patch('services.dispatch.schedulers.resolve_expired_broadcast', side_effect=resolve):
			result = process_expired_broadcasts(now=self.now + timedelta(seconds=61), notifier=self.notifier)

		self.assertEqual(result.failed, 1)
		self.assertEqual(result.retried, 1)
		self.assertEqual(result.expired, 2)
		healthy.refresh_from_db()
		self.assertEqual(healthy.broadcast_attempts, 2)

	def test_expiry_is_counted_when_resolution_loses_a_race(self):
		job = make_job()
		start_broadcast(job.id, now=self.now, notifier=self.notifier)
		lost = InvalidStateError('Cannot retry broadcast', current_state=BroadcastStatus.NOT_STARTED)

		with patch('services.dispatch.schedulers.resolve_expired_broadcast', side_effect=lost):
			result = process_expired_broadcasts(now=self.now + timedelta(seconds=61), notifier=self.notifier)

		self.assertEqual(result.expired, 1)
		self.assertEqual(result.skipped, 1)
		self.assertEqual(result.retried, 0)
		job.refresh_from_db()
		self.assertEqual(job.broadcast_status, BroadcastStatus.EXPIRED)
