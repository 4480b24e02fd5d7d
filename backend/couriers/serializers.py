from rest_framework import serializers
from couriers.models import Courier


class CourierBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of courier info for dispatch payloads
    (sent to admins or embedded in job snapshots).
    """

    class Meta:
        model = Courier
        fields = [
            "id",
            "name",
            "phone_number",
            "service_area",
            "last_latitude",
            "last_longitude",
        ]
