"""Celery tasks for delivery dispatch background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def process_ready_broadcasts_task():
    """
    Start broadcasts for every job waiting in the ready queue.

    Scheduled by celery beat every DISPATCH_READY_SCAN_INTERVAL seconds.
    Overlapping runs are safe: each job transition is conditional.
    """
    from services.dispatch import process_ready_broadcasts

    result = process_ready_broadcasts()
    if result.found:
        logger.info("Ready scan task: %s", result.as_dict())
    return result.as_dict()


@shared_task
def process_expired_broadcasts_task():
    """
    Expire overdue broadcasts, then retry or escalate each one.

    Scheduled by celery beat every DISPATCH_EXPIRY_SWEEP_INTERVAL seconds.
    """
    from services.dispatch import process_expired_broadcasts

    result = process_expired_broadcasts()
    if result.found:
        logger.info("Expiry sweep task: %s", result.as_dict())
    return result.as_dict()
