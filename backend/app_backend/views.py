import redis
from django.conf import settings
from django.utils import timezone
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
from channels.layers import get_channel_layer

from deliveries.models import BroadcastStatus, DeliveryJob
from deliveries.tasks import process_expired_broadcasts_task, process_ready_broadcasts_task


def _check_database():
    DeliveryJob.objects.exists()


def _check_redis():
    redis_client = redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=0,
        socket_timeout=3
    )
    redis_client.ping()


def _check_channels():
    if get_channel_layer() is None:
        raise RuntimeError("no channel layer")


def _check_celery():
    for task in (process_ready_broadcasts_task, process_expired_broadcasts_task):
        if not task.name:
            raise RuntimeError("dispatch tasks not registered")


HEALTH_CHECKS = (
    ("database", _check_database),
    ("redis", _check_redis),
    ("channels", _check_channels),
    ("celery", _check_celery),
)


@api_view(["GET"])
def health_check(request):
    """Health check endpoint for monitoring system status"""

    health_status = {
        "status": "healthy",
        "timestamp": timezone.now().isoformat(),
        "services": {}
    }

    for name, check in HEALTH_CHECKS:
        try:
            check()
            health_status["services"][name] = "healthy"
        except Exception as e:
            health_status["services"][name] = f"unhealthy: {e}"
            health_status["status"] = "unhealthy"

    # Broadcasts past their deadline mean the expiry sweep is not running
    if health_status["services"]["database"] == "healthy":
        health_status["dispatch"] = {
            "broadcasting": DeliveryJob.objects.filter(
                broadcast_status=BroadcastStatus.BROADCASTING
            ).count(),
            "overdue": DeliveryJob.objects.filter(
                broadcast_status=BroadcastStatus.BROADCASTING,
                broadcast_end_time__lt=timezone.now(),
            ).count(),
            "awaiting_manual_assignment": DeliveryJob.objects.filter(
                broadcast_status=BroadcastStatus.MANUAL_ASSIGNMENT,
                assigned_courier__isnull=True,
            ).count(),
        }

    status_code = (
        status.HTTP_200_OK
        if health_status["status"] == "healthy"
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )

    return Response(health_status, status=status_code)
