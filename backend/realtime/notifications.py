"""
Notification helpers for sending dispatch events over the channel layer.

This module provides:
- Broadcast offers to eligible couriers (courier_<id> groups)
- "No longer available" / "broadcast expired" signals to offered couriers
- Admin alerts for the dispatch dashboard (dispatch_admins group)

Every send is fire-and-forget: failures are logged and never raised back
into dispatch, which has already committed its state change.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

ADMIN_GROUP = "dispatch_admins"


def courier_group(courier_id: int) -> str:
    return f"courier_{courier_id}"


class ChannelLayerNotifier:
    """Notification dispatcher backed by the Django Channels layer."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        return self._channel_layer or get_channel_layer()

    def _group_send(self, group: str, payload: Dict[str, Any]) -> bool:
        channel_layer = self.channel_layer
        if channel_layer is None:
            logger.warning("No channel layer available, dropping %s for %s", payload.get("type"), group)
            return False
        try:
            async_to_sync(channel_layer.group_send)(group, payload)
        except Exception:
            logger.exception("Failed to send %s to %s", payload.get("type"), group)
            return False
        logger.debug("WS -> %s: %s", group, payload.get("type"))
        return True

    def _fan_out(self, courier_ids: Iterable[int], payload: Dict[str, Any]) -> int:
        sent = 0
        for courier_id in courier_ids:
            if self._group_send(courier_group(courier_id), {**payload, "courier_id": courier_id}):
                sent += 1
        return sent

    # ---------------------- Courier Notifications ----------------------

    def broadcast_offer(self, job, courier_ids: Iterable[int]) -> int:
        """
        Offer a job to each courier in ``courier_ids``.
        
        Args:
            job: DeliveryJob instance currently broadcasting
            courier_ids: Target courier IDs
        
        Returns:
            Number of couriers the offer was sent to
        """
        from deliveries.serializers import DeliveryJobSummarySerializer

        payload = {
            "type": "delivery_broadcast",
            "job_id": job.id,
            "job_data": DeliveryJobSummarySerializer(job).data,
        }
        return self._fan_out(courier_ids, payload)

    def job_unavailable(self, job_id: int, courier_ids: Iterable[int]) -> int:
        """Tell couriers a job they were offered has been taken."""
        payload = {
            "type": "delivery_unavailable",
            "job_id": job_id,
            "message": "This delivery is no longer available.",
        }
        return self._fan_out(courier_ids, payload)

    def broadcast_expired(self, job, courier_ids: Iterable[int]) -> int:
        """Tell offered couriers the broadcast window has closed."""
        payload = {
            "type": "delivery_broadcast_expired",
            "job_id": job.id,
            "attempt": job.broadcast_attempts,
            "message": "This delivery offer has timed out.",
        }
        return self._fan_out(courier_ids, payload)

    # ---------------------- Admin Alerts ----------------------

    def admin_alert(
        self,
        event_type: str,
        title: str = "",
        message: str = "",
        data: Dict[str, Any] = None,
    ) -> bool:
        """
        Send an event to the dispatch admin dashboard.
        
        Args:
            event_type: broadcast_started, delivery_accepted, broadcast_failed, delivery_manually_assigned
            title: Short human readable title
            message: Longer description
            data: Event details (job id, attempts, reason, ...)
        """
        payload = {
            "type": "dispatch_admin_event",
            "event": event_type,
            "title": title,
            "message": message,
            "data": data or {},
        }
        return self._group_send(ADMIN_GROUP, payload)


def get_notifier() -> ChannelLayerNotifier:
    return ChannelLayerNotifier()


def safe_notify(notifier, method: str, *args, **kwargs):
    """
    Call ``notifier.<method>`` and swallow any failure.

    Used by dispatch services so that a broken or replaced notifier can never
    undo a transition that is already committed.
    """
    try:
        return getattr(notifier, method)(*args, **kwargs)
    except Exception:
        logger.exception("Notification %s failed", method)
        return None
