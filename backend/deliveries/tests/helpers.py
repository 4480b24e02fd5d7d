from couriers.models import Courier
from deliveries.models import DeliveryJob

# Lefkosa centre
PICKUP = (35.1856, 33.3823)


def make_courier(name, latitude=None, longitude=None, **fields):
	fields.setdefault('is_active', True)
	fields.setdefault('is_online', True)
	fields.setdefault('is_suspended', False)
	return Courier.objects.create(
		name=name,
		last_latitude=latitude,
		last_longitude=longitude,
		**fields
	)


def make_job(**fields):
	fields.setdefault('pickup_latitude', PICKUP[0])
	fields.setdefault('pickup_longitude', PICKUP[1])
	fields.setdefault('pickup_address', 'Ataturk Square')
	fields.setdefault('dropoff_address', 'Dereboyu Avenue')
	fields.setdefault('fee', '45.00')
	return DeliveryJob.objects.create(**fields)
