from django.test import TestCase

from .models import Courier
from .services import courier_position, eligible_couriers, get_courier


class CourierDirectoryTests(TestCase):
	def setUp(self):
		self.online = Courier.objects.create(
			name='Online',
			is_online=True,
			last_latitude=35.1900,
			last_longitude=33.3850
		)
		self.offline = Courier.objects.create(name='Offline', is_online=False)
		self.suspended = Courier.objects.create(name='Suspended', is_online=True, is_suspended=True)
		self.inactive = Courier.objects.create(name='Inactive', is_online=True, is_active=False)

	def test_only_active_online_unsuspended_couriers_are_eligible(self):
		self.assertEqual(list(eligible_couriers()), [self.online])
		self.assertTrue(self.online.is_eligible)
		self.assertFalse(self.offline.is_eligible)
		self.assertFalse(self.suspended.is_eligible)
		self.assertFalse(self.inactive.is_eligible)

	def test_get_courier_returns_none_for_unknown_id(self):
		self.assertEqual(get_courier(self.online.id), self.online)
		self.assertIsNone(get_courier(999999))

	def test_position_uses_live_location(self):
		self.online.refresh_from_db()
		self.assertEqual(courier_position(self.online), (35.19, 33.385))

	def test_position_falls_back_to_service_area(self):
		courier = Courier.objects.create(name='Kyrenia', service_area='Kyrenia', is_online=True)
		self.assertFalse(courier.has_location)
		self.assertEqual(courier_position(courier), (35.3333, 33.3167))
