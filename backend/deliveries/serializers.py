from decimal import ROUND_HALF_UP, InvalidOperation

from rest_framework import serializers

from couriers.serializers import CourierBasicSerializer
from services.dispatch.config import get_dispatch_config
from .models import DeliveryJob, Priority

PRIORITY_NAMES = {
    'low': Priority.LOW,
    'normal': Priority.NORMAL,
    'high': Priority.HIGH,
    'urgent': Priority.URGENT,
}


class DeliveryJobSerializer(serializers.ModelSerializer):
    """Full snapshot of a delivery job and its broadcast state"""
    assigned_courier = CourierBasicSerializer(read_only=True)
    priority = serializers.CharField(source='get_priority_display', read_only=True)

    class Meta:
        model = DeliveryJob
        fields = ['id', 'pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_latitude', 'dropoff_longitude', 'dropoff_address',
                  'fee', 'priority', 'notes', 'status', 'broadcast_status',
                  'broadcast_start_time', 'broadcast_end_time', 'broadcast_radius_km',
                  'broadcast_duration_sec', 'broadcast_attempts', 'max_broadcast_attempts',
                  'assigned_courier', 'assigned_at', 'accepted_at', 'created_at']
        read_only_fields = fields


class DeliveryJobSummarySerializer(serializers.ModelSerializer):
    """Job summary sent to couriers with a broadcast offer"""
    priority = serializers.CharField(source='get_priority_display', read_only=True)

    class Meta:
        model = DeliveryJob
        fields = ['id', 'pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_address', 'fee', 'priority', 'notes',
                  'broadcast_end_time', 'broadcast_duration_sec', 'broadcast_radius_km',
                  'broadcast_attempts']
        read_only_fields = fields


class CoordinateField(serializers.DecimalField):
    """Decimal degrees, rounded to the stored six places instead of rejected"""

    def __init__(self, **kwargs):
        kwargs.setdefault('max_digits', 9)
        kwargs.setdefault('decimal_places', 6)
        kwargs.setdefault('rounding', ROUND_HALF_UP)
        super().__init__(**kwargs)

    def validate_precision(self, value):
        try:
            value = self.quantize(value)
        except InvalidOperation:
            # Too many whole digits to round; reported as max_digits below
            pass
        return super().validate_precision(value)


class DeliveryJobCreateSerializer(serializers.ModelSerializer):
    """
    Validates job data handed over by intake.

    Broadcast parameters are optional per-job overrides of the configured
    defaults and must stay inside the configured bounds.
    """
    pickup_latitude = CoordinateField()
    pickup_longitude = CoordinateField()
    dropoff_latitude = CoordinateField(required=False, allow_null=True)
    dropoff_longitude = CoordinateField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=list(PRIORITY_NAMES), default='normal')
    broadcast_radius_km = serializers.FloatField(required=False)
    broadcast_duration_sec = serializers.IntegerField(required=False)
    max_broadcast_attempts = serializers.IntegerField(required=False)
    auto_dispatch = serializers.BooleanField(default=True)
    assigned_courier_id = serializers.IntegerField(required=False, allow_null=True)

    class Meta:
        model = DeliveryJob
        fields = ['pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_latitude', 'dropoff_longitude', 'dropoff_address',
                  'fee', 'priority', 'notes', 'broadcast_radius_km',
                  'broadcast_duration_sec', 'max_broadcast_attempts',
                  'auto_dispatch', 'assigned_courier_id']

    def validate_priority(self, value):
        return PRIORITY_NAMES[value]

    def validate_pickup_latitude(self, value):
        if not -90 <= value <= 90:
            raise serializers.ValidationError("Latitude must be between -90 and 90.")
        return value

    def validate_pickup_longitude(self, value):
        if not -180 <= value <= 180:
            raise serializers.ValidationError("Longitude must be between -180 and 180.")
        return value

    def validate_dropoff_latitude(self, value):
        if value is None:
            return value
        return self.validate_pickup_latitude(value)

    def validate_dropoff_longitude(self, value):
        if value is None:
            return value
        return self.validate_pickup_longitude(value)

    def validate_broadcast_radius_km(self, value):
        config = get_dispatch_config()
        if not config.min_radius_km <= value <= config.max_radius_km:
            raise serializers.ValidationError(
                f"Broadcast radius must be between {config.min_radius_km} and {config.max_radius_km} km."
            )
        return value

    def validate_broadcast_duration_sec(self, value):
        config = get_dispatch_config()
        if not config.min_duration_sec <= value <= config.max_duration_sec:
            raise serializers.ValidationError(
                f"Broadcast duration must be between {config.min_duration_sec} and {config.max_duration_sec} seconds."
            )
        return value

    def validate_max_broadcast_attempts(self, value):
        config = get_dispatch_config()
        if not config.min_attempts <= value <= config.max_attempts:
            raise serializers.ValidationError(
                f"Max broadcast attempts must be between {config.min_attempts} and {config.max_attempts}."
            )
        return value

    def validate(self, attrs):
        if not attrs.get('auto_dispatch', True) and not attrs.get('assigned_courier_id'):
            raise serializers.ValidationError(
                {'assigned_courier_id': "A courier is required when automatic dispatch is disabled."}
            )
        if attrs.get('auto_dispatch', True) and attrs.get('assigned_courier_id'):
            raise serializers.ValidationError(
                {'assigned_courier_id': "Only jobs without automatic dispatch can name a courier."}
            )
        config = get_dispatch_config()
        attrs.setdefault('broadcast_radius_km', config.default_radius_km)
        attrs.setdefault('broadcast_duration_sec', config.default_duration_sec)
        attrs.setdefault('max_broadcast_attempts', config.default_max_attempts)
        return attrs
