from django.db import models


class JobStatus(models.TextChoices):
    """Delivery job lifecycle, mostly driven outside dispatch."""
    PENDING = 'pending', 'Pending'
    BROADCASTING = 'broadcasting', 'Broadcasting'
    ACCEPTED = 'accepted', 'Accepted'
    PICKED_UP = 'picked_up', 'Picked Up'
    IN_TRANSIT = 'in_transit', 'In Transit'
    DELIVERED = 'delivered', 'Delivered'
    CANCELLED = 'cancelled', 'Cancelled'
    FAILED = 'failed', 'Failed'


# Job statuses that block every dispatch transition
TERMINAL_JOB_STATUSES = (
    JobStatus.DELIVERED,
    JobStatus.CANCELLED,
    JobStatus.FAILED,
)


class BroadcastStatus(models.TextChoices):
    """Automated dispatch state of a delivery job."""
    NOT_STARTED = 'not_started', 'Not Started'
    BROADCASTING = 'broadcasting', 'Broadcasting'
    ACCEPTED = 'accepted', 'Accepted'
    EXPIRED = 'expired', 'Expired'
    MANUAL_ASSIGNMENT = 'manual_assignment', 'Manual Assignment'


class Priority(models.IntegerChoices):
    """Ordered priority tiers; higher values are dispatched first."""
    LOW = 0, 'Low'
    NORMAL = 1, 'Normal'
    HIGH = 2, 'High'
    URGENT = 3, 'Urgent'


class DeliveryJob(models.Model):
    """A delivery job being matched to a single courier."""

    # Pickup location
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField(blank=True, default='')

    # Dropoff location
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    dropoff_address = models.TextField(blank=True, default='')

    fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    priority = models.IntegerField(choices=Priority.choices, default=Priority.NORMAL)
    notes = models.TextField(blank=True, default='')

    status = models.CharField(max_length=20, choices=JobStatus.choices, default=JobStatus.PENDING)

    # Broadcast state
    broadcast_status = models.CharField(
        max_length=20,
        choices=BroadcastStatus.choices,
        default=BroadcastStatus.NOT_STARTED,
    )
    broadcast_start_time = models.DateTimeField(null=True, blank=True)
    broadcast_end_time = models.DateTimeField(null=True, blank=True)
    broadcast_radius_km = models.FloatField(default=5.0)
    broadcast_duration_sec = models.PositiveIntegerField(default=60)
    broadcast_attempts = models.PositiveIntegerField(default=0)
    max_broadcast_attempts = models.PositiveIntegerField(default=3)

    # Assignment
    assigned_courier = models.ForeignKey(
        'couriers.Courier',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='assigned_jobs',
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'delivery_jobs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'broadcast_status']),
            models.Index(fields=['broadcast_status', 'broadcast_end_time']),
            models.Index(fields=['priority', 'created_at']),
        ]

    def __str__(self):
        return f"Job #{self.id} - {self.get_broadcast_status_display()}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


class BroadcastOffer(models.Model):
    """Tracks which couriers were offered a job, per broadcast attempt."""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('expired', 'Expired'),
        ('withdrawn', 'Withdrawn'),
    ]

    job = models.ForeignKey(
        DeliveryJob,
        on_delete=models.CASCADE,
        related_name='offers'
    )

    courier = models.ForeignKey(
        'couriers.Courier',
        on_delete=models.CASCADE,
        related_name='offers'
    )

    attempt = models.PositiveIntegerField()
    order = models.PositiveIntegerField()  # 0 = closest courier
    distance_km = models.FloatField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    sent_at = models.DateTimeField()
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'broadcast_offers'
        ordering = ['attempt', 'order']
        constraints = [
            models.UniqueConstraint(
                fields=['job', 'courier', 'attempt'],
                name='unique_job_courier_attempt'
            )
        ]

    def __str__(self):
        return f"Offer #{self.id} - Job {self.job_id} -> Courier {self.courier_id} (attempt {self.attempt})"
