"""Deliveries app configuration."""

from django.apps import AppConfig


class DeliveriesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'deliveries'

    def ready(self):
        # Periodic dispatch sweeps are started explicitly, either by the
        # run_dispatch_workers command or by Celery beat (see tasks.py).
        pass
