import json

from django.core.management.base import BaseCommand
from services.dispatch import broadcast_stats


class Command(BaseCommand):
    help = "Show how many delivery jobs are in each broadcast status."

    def add_arguments(self, parser):
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the raw statistics as JSON.",
        )

    def handle(self, *args, **options):
        stats = broadcast_stats()

        if options["json"]:
            self.stdout.write(json.dumps(stats, indent=2))
            return

        for broadcast_status, count in stats["by_status"].items():
            self.stdout.write(f"{broadcast_status:<20} {count}")
        self.stdout.write(
            self.style.SUCCESS(
                f"Total {stats['total']} job(s); {stats['active_count']} broadcasting, "
                f"{stats['expired_count']} overdue."
            )
        )
