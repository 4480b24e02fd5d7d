from django.core.management.base import BaseCommand
from services.dispatch import process_expired_broadcasts


class Command(BaseCommand):
    help = "Expire overdue delivery broadcasts and retry or escalate them."

    def handle(self, *args, **options):
        result = process_expired_broadcasts()

        self.stdout.write(
            self.style.SUCCESS(
                f"Found {result.found} overdue job(s); expired {result.expired}, "
                f"retried {result.retried}, escalated {result.escalated} to manual assignment, "
                f"skipped {result.skipped}, failed {result.failed}."
            )
        )
