from unittest.mock import patch

from django.test import TestCase


class HealthCheckTests(TestCase):
	@patch('app_backend.views.redis.Redis')
	def test_healthy_when_every_service_answers(self, mock_redis):
		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.json()['status'], 'healthy')
		self.assertEqual(
			set(response.json()['services']),
			{'database', 'redis', 'channels', 'celery'}
		)
		mock_redis.return_value.ping.assert_called_once()
		self.assertEqual(response.json()['dispatch']['overdue'], 0)

	@patch('app_backend.views.redis.Redis')
	def test_unhealthy_when_redis_is_down(self, mock_redis):
		mock_redis.return_value.ping.side_effect = ConnectionError('refused')

		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertTrue(response.json()['services']['redis'].startswith('unhealthy'))
