from django.db import models
from django.utils import timezone


class Courier(models.Model):
    """
    Read-only projection of a courier from the external courier directory.

    Dispatch only reads these rows; the directory service owns every write.
    """
    SERVICE_AREA_CHOICES = [
        ('Lefkosa', 'Lefkosa'),
        ('Gonyeli', 'Gonyeli'),
        ('Kucuk', 'Kucuk'),
        ('Famagusta', 'Famagusta'),
        ('Kyrenia', 'Kyrenia'),
        ('Other', 'Other'),
    ]

    name = models.CharField(max_length=100)
    phone_number = models.CharField(max_length=20, blank=True)

    # Availability flags
    is_active = models.BooleanField(default=True)
    is_online = models.BooleanField(default=False)
    is_suspended = models.BooleanField(default=False)

    # Last reported location, service area used as a fallback
    service_area = models.CharField(max_length=30, choices=SERVICE_AREA_CHOICES, default='Lefkosa')
    last_latitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    last_longitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    last_location_update = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'couriers'
        ordering = ['id']

    def __str__(self):
        return f"{self.name} (#{self.id})"

    @property
    def is_eligible(self) -> bool:
        """Active, online and not suspended."""
        return self.is_active and self.is_online and not self.is_suspended

    @property
    def has_location(self) -> bool:
        return self.last_latitude is not None and self.last_longitude is not None
