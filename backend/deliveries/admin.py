"""Tells what to show in the Django admin interface for the deliveries app"""

from django.contrib import admin
from .models import DeliveryJob, BroadcastOffer


class BroadcastOfferInline(admin.TabularInline):
    model = BroadcastOffer
    extra = 0
    readonly_fields = ("courier", "attempt", "order", "distance_km", "status", "sent_at", "responded_at")
    can_delete = False


@admin.register(DeliveryJob)
class DeliveryJobAdmin(admin.ModelAdmin):
    """Delivery job admin"""
    list_display = ['id', 'status', 'broadcast_status', 'priority', 'broadcast_attempts',
                    'assigned_courier', 'broadcast_end_time', 'created_at']
    list_filter = ['status', 'broadcast_status', 'priority', 'created_at']
    search_fields = ['pickup_address', 'dropoff_address', 'assigned_courier__name']
    readonly_fields = ['broadcast_start_time', 'broadcast_end_time', 'broadcast_attempts',
                       'assigned_at', 'accepted_at', 'created_at', 'updated_at']
    date_hierarchy = 'created_at'
    inlines = [BroadcastOfferInline]


@admin.register(BroadcastOffer)
class BroadcastOfferAdmin(admin.ModelAdmin):
    list_display = ("job", "courier", "attempt", "order", "distance_km", "status", "sent_at", "responded_at")
    list_filter = ("status", "attempt")
    search_fields = ("job__id", "courier__name")
