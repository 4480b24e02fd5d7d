import time

from django.core.management.base import BaseCommand
from deliveries.dispatch_workers import DispatchWorkers


class Command(BaseCommand):
    help = "Run the ready queue scanner and the expiry sweeper until interrupted."

    def add_arguments(self, parser):
        parser.add_argument(
            "--ready-interval",
            type=float,
            default=None,
            help="Seconds between ready queue scans (default: DISPATCH_READY_SCAN_INTERVAL).",
        )
        parser.add_argument(
            "--expiry-interval",
            type=float,
            default=None,
            help="Seconds between expiry sweeps (default: DISPATCH_EXPIRY_SWEEP_INTERVAL).",
        )

    def handle(self, *args, **options):
        workers = DispatchWorkers(
            ready_interval=options["ready_interval"],
            expiry_interval=options["expiry_interval"],
        )
        workers.start()
        status = workers.status()
        self.stdout.write(
            self.style.SUCCESS(
                f"Dispatch workers running (ready scan every {status['ready_scan']['interval_seconds']}s, "
                f"expiry sweep every {status['expiry_sweep']['interval_seconds']}s). Press Ctrl+C to stop."
            )
        )
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stdout.write("Stopping dispatch workers...")
        finally:
            workers.stop()
