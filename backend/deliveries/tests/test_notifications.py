from unittest.mock import AsyncMock, MagicMock

from asgiref.sync import async_to_sync
from channels.layers import InMemoryChannelLayer
from django.test import TestCase

from realtime.notifications import (
	ADMIN_GROUP,
	ChannelLayerNotifier,
	courier_group,
	safe_notify,
)

from .helpers import make_job


class ChannelLayerNotifierTests(TestCase):
	def setUp(self):
		self.layer = InMemoryChannelLayer()
		self.notifier = ChannelLayerNotifier(channel_layer=self.layer)
		self.job = make_job()

	def listen(self, group):
		channel = async_to_sync(self.layer.new_channel)()
		async_to_sync(self.layer.group_add)(group, channel)
		return channel

	def receive(self, channel):
		return async_to_sync(self.layer.receive)(channel)

	def test_broadcast_offer_reaches_each_courier_group(self):
		first = self.listen(courier_group(1))
		second = self.listen(courier_group(2))

		sent = self.notifier.broadcast_offer(self.job, [1, 2])

		self.assertEqual(sent, 2)
		message = self.receive(first)
		self.assertEqual(message['type'], 'delivery_broadcast')
		self.assertEqual(message['job_id'], self.job.id)
		self.assertEqual(message['courier_id'], 1)
		self.assertEqual(message['job_data']['priority'], 'Normal')
		self.assertEqual(self.receive(second)['courier_id'], 2)

	def test_job_unavailable(self):
		channel = self.listen(courier_group(7))

		self.notifier.job_unavailable(self.job.id, [7])

		message = self.receive(channel)
		self.assertEqual(message['type'], 'delivery_unavailable')
		self.assertEqual(message['job_id'], self.job.id)

	def test_broadcast_expired(self):
		channel = self.listen(courier_group(7))

		self.notifier.broadcast_expired(self.job, [7])

		self.assertEqual(self.receive(channel)['type'], 'delivery_broadcast_expired')

	def test_admin_alert(self):
		channel = self.listen(ADMIN_GROUP)

		self.notifier.admin_alert('broadcast_failed', title='Broadcast Failed', data={'job_id': self.job.id})

		message = self.receive(channel)
		self.assertEqual(message['type'], 'dispatch_admin_event')
		self.assertEqual(message['event'], 'broadcast_failed')
		self.assertEqual(message['data'], {'job_id': self.job.id})

	def test_layer_failure_is_reported_not_raised(self):
		layer = MagicMock()
		layer.group_send = AsyncMock(side_effect=RuntimeError("redis down"))
		notifier = ChannelLayerNotifier(channel_layer=layer)

		self.assertEqual(notifier.job_unavailable(self.job.id, [1, 2]), 0)
		self.assertFalse(notifier.admin_alert('delivery_accepted'))


class SafeNotifyTests(TestCase):
	def test_swallows_failures(self):
		notifier = MagicMock()
		notifier.admin_alert.side_effect = RuntimeError('boom')

		with self.assertLogs('realtime.notifications', level='ERROR'):
			self.assertIsNone(safe_notify(notifier, 'admin_alert', 'broadcast_started'))

	def test_returns_result(self):
		notifier = MagicMock()
		notifier.job_unavailable.return_value = 3

		self.assertEqual(safe_notify(notifier, 'job_unavailable', 1, [1, 2, 3]), 3)
