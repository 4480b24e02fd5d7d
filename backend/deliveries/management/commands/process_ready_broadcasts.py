from django.core.management.base import BaseCommand
from services.dispatch import process_ready_broadcasts


class Command(BaseCommand):
    help = "Start broadcasts for every delivery job waiting in the ready queue."

    def handle(self, *args, **options):
        result = process_ready_broadcasts()

        self.stdout.write(
            self.style.SUCCESS(
                f"Found {result.found} ready job(s); started {result.started}, "
                f"skipped {result.skipped}, failed {result.failed}."
            )
        )
