from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from common.utils import calculate_distance, get_service_area_coordinates, parse_location


class CalculateDistanceTests(SimpleTestCase):
	def test_same_point_is_zero(self):
		self.assertEqual(calculate_distance(35.1856, 33.3823, 35.1856, 33.3823), 0)

	def test_lefkosa_to_gonyeli_is_just_over_five_km(self):
		distance = calculate_distance(35.1856, 33.3823, 35.2167, 33.3333)
		self.assertGreater(distance, 5.0)
		self.assertAlmostEqual(distance, 5.6, delta=0.2)

	def test_nearby_point_is_about_half_a_km(self):
		distance = calculate_distance(35.1856, 33.3823, 35.1900, 33.3850)
		self.assertAlmostEqual(distance, 0.55, delta=0.1)

	def test_is_symmetric(self):
		there = calculate_distance(35.1856, 33.3823, 35.3333, 33.3167)
		back = calculate_distance(35.3333, 33.3167, 35.1856, 33.3823)
		self.assertAlmostEqual(there, back)

	def test_accepts_strings_and_decimals(self):
		distance = calculate_distance(Decimal('35.1856'), '33.3823', 35.1900, 33.3850)
		self.assertAlmostEqual(distance, 0.55, delta=0.1)


class ServiceAreaTests(SimpleTestCase):
	def test_known_area(self):
		self.assertEqual(get_service_area_coordinates('Kyrenia'), (35.3333, 33.3167))

	def test_unknown_area_falls_back_to_default(self):
		self.assertEqual(get_service_area_coordinates('Other'), (35.1856, 33.3823))
		self.assertEqual(get_service_area_coordinates(None), (35.1856, 33.3823))

	@override_settings(
		DISPATCH_SERVICE_AREA_COORDINATES={'Depot': (1.0, 2.0)},
		DISPATCH_DEFAULT_SERVICE_AREA='Depot',
	)
	def test_coordinates_come_from_settings(self):
		self.assertEqual(get_service_area_coordinates('Lefkosa'), (1.0, 2.0))


class ParseLocationTests(SimpleTestCase):
	def test_tuple(self):
		self.assertEqual(parse_location((35.19, 33.38)), (35.19, 33.38))

	def test_dict_variants(self):
		self.assertEqual(parse_location({'lat': 35.19, 'lng': 33.38}), (35.19, 33.38))
		self.assertEqual(parse_location({'latitude': '35.19', 'longitude': '33.38'}), (35.19, 33.38))
		self.assertEqual(parse_location({'lat': 35.19, 'lon': 33.38}), (35.19, 33.38))

	def test_unusable_values(self):
		self.assertIsNone(parse_location(None))
		self.assertIsNone(parse_location({'lat': 35.19}))
		self.assertIsNone(parse_location('nowhere'))
		self.assertIsNone(parse_location((95.0, 33.38)))
		self.assertIsNone(parse_location(('abc', 33.38)))
