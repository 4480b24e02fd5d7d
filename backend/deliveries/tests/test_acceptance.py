import threading
from datetime import timedelta
from unittest.mock import MagicMock

from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone

from deliveries.models import BroadcastOffer, BroadcastStatus, DeliveryJob, JobStatus
from services.dispatch import (
	AlreadyAcceptedError,
	BroadcastExpiredError,
	CourierNotEligibleError,
	CourierNotFoundError,
	InvalidStateError,
	JobNotFoundError,
	accept_job,
	start_broadcast,
)

from .helpers import make_courier, make_job


class AcceptJobTests(TestCase):
	def setUp(self):
		self.now = timezone.now()
		self.notifier = MagicMock()
		self.courier_one = make_courier('One', 35.1900, 33.3850)
		self.courier_two = make_courier('Two', 35.1870, 33.3830)
		self.job = make_job(broadcast_duration_sec=60)
		start_broadcast(self.job.id, now=self.now, notifier=self.notifier)
		self.notifier.reset_mock()

	def test_accept_assigns_courier_and_settles_offers(self):
		job = accept_job(self.job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

		self.assertEqual(job.broadcast_status, BroadcastStatus.ACCEPTED)
		self.assertEqual(job.status, JobStatus.ACCEPTED)
		self.assertEqual(job.assigned_courier_id, self.courier_one.id)
		self.assertEqual(job.assigned_at, self.now)
		self.assertEqual(job.accepted_at, self.now)

		winner = BroadcastOffer.objects.get(job=self.job, courier=self.courier_one)
		loser = BroadcastOffer.objects.get(job=self.job, courier=self.courier_two)
		self.assertEqual(winner.status, 'accepted')
		self.assertEqual(loser.status, 'withdrawn')

	def test_accept_tells_other_couriers_job_is_gone(self):
		accept_job(self.job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

		self.notifier.job_unavailable.assert_called_once_with(self.job.id, [self.courier_two.id])
		self.assertEqual(self.notifier.admin_alert.call_args[0][0], 'delivery_accepted')

	def test_second_courier_gets_already_accepted(self):
		accept_job(self.job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

		with self.assertRaises(AlreadyAcceptedError):
			accept_job(self.job.id, self.courier_two.id, now=self.now, notifier=self.notifier)

		self.job.refresh_from_db()
		self.assertEqual(self.job.assigned_courier_id, self.courier_one.id)

	def test_accept_after_deadline_fails_before_sweep_runs(self):
		self.job.refresh_from_db()
		late = self.job.broadcast_end_time + timedelta(seconds=1)

		with self.assertRaises(BroadcastExpiredError):
			accept_job(self.job.id, self.courier_one.id, now=late, notifier=self.notifier)

		self.job.refresh_from_db()
		self.assertEqual(self.job.broadcast_status, BroadcastStatus.BROADCASTING)
		self.assertIsNone(self.job.assigned_courier_id)

	def test_accept_exactly_at_deadline_succeeds(self):
		self.job.refresh_from_db()

		job = accept_job(
			self.job.id, self.courier_one.id, now=self.job.broadcast_end_time, notifier=self.notifier
		)

		self.assertEqual(job.broadcast_status, BroadcastStatus.ACCEPTED)

	def test_accept_refused_when_not_broadcasting(self):
		job = make_job()

		with self.assertRaises(InvalidStateError) as ctx:
			accept_job(job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

		self.assertEqual(ctx.exception.current_state, BroadcastStatus.NOT_STARTED)

	def test_accept_refused_for_cancelled_job(self):
		DeliveryJob.objects.filter(pk=self.job.id).update(status=JobStatus.CANCELLED)

		with self.assertRaises(InvalidStateError) as ctx:
			accept_job(self.job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

		self.assertEqual(ctx.exception.current_state, JobStatus.CANCELLED)

	def test_offline_courier_cannot_accept(self):
		self.courier_one.is_online = False
		self.courier_one.save()

		with self.assertRaises(CourierNotEligibleError):
			accept_job(self.job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

	def test_suspended_courier_cannot_accept(self):
		self.courier_one.is_suspended = True
		self.courier_one.save()

		with self.assertRaises(CourierNotEligibleError):
			accept_job(self.job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

	def test_unknown_courier_and_job(self):
		with self.assertRaises(CourierNotFoundError):
			accept_job(self.job.id, 999999, now=self.now, notifier=self.notifier)
		with self.assertRaises(JobNotFoundError):
			accept_job(999999, self.courier_one.id, now=self.now, notifier=self.notifier)

	def test_courier_outside_radius_may_still_accept(self):
		far = make_courier('Far', 35.3333, 33.3167)

		job = accept_job(self.job.id, far.id, now=self.now, notifier=self.notifier)

		self.assertEqual(job.assigned_courier_id, far.id)
		self.notifier.job_unavailable.assert_called_once_with(
			self.job.id, [self.courier_one.id, self.courier_two.id]
		)

	def test_notifier_failure_does_not_roll_back_acceptance(self):
		self.notifier.job_unavailable.side_effect = RuntimeError('layer down')
		self.notifier.admin_alert.side_effect = RuntimeError('layer down')

		job = accept_job(self.job.id, self.courier_one.id, now=self.now, notifier=self.notifier)

		self.assertEqual(job.assigned_courier_id, self.courier_one.id)
		self.job.refresh_from_db()
		self.assertEqual(self.job.broadcast_status, BroadcastStatus.ACCEPTED)


class ConcurrentAcceptTests(TransactionTestCase):
	"""Several couriers accepting the same job at the same moment."""

	COURIERS = 5

	def setUp(self):
		self.now = timezone.now()
		self.notifier = MagicMock()
		self.couriers = [
			make_courier('Racer %d' % i, 35.1900, 33.3850) for i in range(self.COURIERS)
		]
		self.job = make_job(broadcast_duration_sec=60)
		start_broadcast(self.job.id, now=self.now, notifier=self.notifier)

	def test_exactly_one_courier_wins(self):
		barrier = threading.Barrier(self.COURIERS)
		results = {}
		lock = threading.Lock()

		def attempt(courier_id):
			try:
				barrier.wait()
				try:
					accept_job(self.job.id, courier_id, now=self.now, notifier=self.notifier)
					outcome = 'won'
				except AlreadyAcceptedError:
					outcome = 'already_accepted'
				except Exception as exc:  # surfaced in the assertion below
					outcome = repr(exc)
				with lock:
					results[courier_id] = outcome
			finally:
				connection.close()

		threads = [
			threading.Thread(target=attempt, args=(courier.id,)) for courier in self.couriers
		]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join(30)

		winners = [courier_id for courier_id, outcome in results.items() if outcome == 'won']
		losers = [courier_id for courier_id, outcome in results.items() if outcome == 'already_accepted']
		self.assertEqual(len(results), self.COURIERS, results)
		self.assertEqual(len(winners), 1, results)
		self.assertEqual(len(losers), self.COURIERS - 1, results)

		self.job.refresh_from_db()
		self.assertEqual(self.job.assigned_courier_id, winners[0])
		self.assertEqual(self.job.broadcast_status, BroadcastStatus.ACCEPTED)
		self.assertEqual(
			BroadcastOffer.objects.filter(job=self.job, status='accepted').count(), 1
		)

		# Every loser was told the job is gone
		unavailable = self.notifier.job_unavailable.call_args_list
		self.assertEqual(len(unavailable), 1)
		self.assertCountEqual(unavailable[0][0][1], losers)
