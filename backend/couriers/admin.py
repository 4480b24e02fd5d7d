from django.contrib import admin
from couriers.models import Courier


@admin.register(Courier)
class CourierAdmin(admin.ModelAdmin):
    """Read-only view of the courier directory projection"""

    list_display = [
        "id",
        "name",
        "service_area",
        "is_active",
        "is_online",
        "is_suspended",
        "last_latitude",
        "last_longitude",
        "last_location_update",
    ]

    list_filter = [
        "is_active",
        "is_online",
        "is_suspended",
        "service_area",
    ]

    search_fields = [
        "name",
        "phone_number",
    ]

    ordering = ("name",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
