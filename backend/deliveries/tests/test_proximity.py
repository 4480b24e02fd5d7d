from django.test import TestCase

from services.matching import find_nearby_couriers

from .helpers import PICKUP, make_courier


class FindNearbyCouriersTests(TestCase):
	def test_excludes_couriers_outside_radius_and_ranks_closest_first(self):
		far = make_courier('Gonyeli', 35.2167, 33.3333)
		near = make_courier('Centre', 35.1900, 33.3850)

		matches = find_nearby_couriers(PICKUP[0], PICKUP[1], 5)

		self.assertEqual([match.courier_id for match in matches], [near.id])
		self.assertLess(matches[0].distance_km, 1.0)
		self.assertNotIn(far.id, [match.courier_id for match in matches])

	def test_ordered_by_distance(self):
		second = make_courier('Second', 35.2000, 33.3900)
		first = make_courier('First', 35.1870, 33.3830)

		matches = find_nearby_couriers(PICKUP[0], PICKUP[1], 5)

		self.assertEqual([match.courier_id for match in matches], [first.id, second.id])
		self.assertLessEqual(matches[0].distance_km, matches[1].distance_km)

	def test_equidistant_couriers_ordered_by_id(self):
		couriers = [make_courier('Twin %d' % i, 35.1900, 33.3850) for i in range(3)]

		matches = find_nearby_couriers(PICKUP[0], PICKUP[1], 5)

		self.assertEqual([match.courier_id for match in matches], [c.id for c in couriers])

	def test_ineligible_couriers_are_never_returned(self):
		make_courier('Offline', 35.1900, 33.3850, is_online=False)
		make_courier('Suspended', 35.1900, 33.3850, is_suspended=True)
		make_courier('Inactive', 35.1900, 33.3850, is_active=False)

		self.assertEqual(find_nearby_couriers(PICKUP[0], PICKUP[1], 50), [])

	def test_courier_without_location_uses_service_area(self):
		lefkosa = make_courier('No GPS', service_area='Lefkosa')
		make_courier('No GPS Famagusta', service_area='Famagusta')

		matches = find_nearby_couriers(PICKUP[0], PICKUP[1], 5)

		self.assertEqual([match.courier_id for match in matches], [lefkosa.id])
		self.assertAlmostEqual(matches[0].distance_km, 0.0, places=3)

	def test_limit_keeps_the_closest(self):
		make_courier('Far', 35.2000, 33.3900)
		close = make_courier('Close', 35.1870, 33.3830)

		matches = find_nearby_couriers(PICKUP[0], PICKUP[1], 5, limit=1)

		self.assertEqual([match.courier_id for match in matches], [close.id])

	def test_no_couriers_is_not_an_error(self):
		self.assertEqual(find_nearby_couriers(PICKUP[0], PICKUP[1], 5), [])
