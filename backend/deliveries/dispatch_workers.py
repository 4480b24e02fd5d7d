"""Background threads that keep running the ready queue scan and the expiry sweep"""

import logging
import threading
from typing import Callable, Dict, Optional

from django.conf import settings
from django.db import close_old_connections

from services.dispatch import process_expired_broadcasts, process_ready_broadcasts

logger = logging.getLogger(__name__)


class PeriodicWorker:
    """Runs ``task`` every ``interval_seconds`` on a daemon thread."""

    def __init__(self, name: str, interval_seconds: float, task: Callable[[], object]):
        self.name = name
        self.interval_seconds = interval_seconds
        self.task = task
        self.runs = 0
        self.last_result = None
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        logger.info("Starting %s worker (interval=%ss)", self.name, self.interval_seconds)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=f"dispatch-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            logger.info("Stopped %s worker", self.name)

    def run_once(self):
        """
        Run the task now. Returns its result, or None if a run is already in
        progress or the task failed.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.debug("%s worker busy, skipping run", self.name)
            return None
        try:
            close_old_connections()
            self.last_result = self.task()
            self.runs += 1
            return self.last_result
        except Exception:
            logger.exception("%s worker encountered an error", self.name)
            return None
        finally:
            close_old_connections()
            self._run_lock.release()

    def _run(self):
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()


class DispatchWorkers:
    """
    Owns the ready queue scanner and the expiry sweeper.

    Args:
        notifier: Notification dispatcher passed to both sweeps
        clock: Zero-argument callable returning the current time
        ready_interval: Seconds between ready queue scans
        expiry_interval: Seconds between expiry sweeps
    """

    def __init__(self, notifier=None, clock=None, ready_interval=None, expiry_interval=None):
        self.notifier = notifier
        self.clock = clock
        if ready_interval is None:
            ready_interval = getattr(settings, "DISPATCH_READY_SCAN_INTERVAL", 10)
        if expiry_interval is None:
            expiry_interval = getattr(settings, "DISPATCH_EXPIRY_SWEEP_INTERVAL", 30)

        self.ready_worker = PeriodicWorker("ready-scan", ready_interval, self._scan_ready)
        self.expiry_worker = PeriodicWorker("expiry-sweep", expiry_interval, self._sweep_expired)

    def _now(self):
        return self.clock() if self.clock else None

    def _scan_ready(self):
        return process_ready_broadcasts(now=self._now(), notifier=self.notifier)

    def _sweep_expired(self):
        return process_expired_broadcasts(now=self._now(), notifier=self.notifier)

    def start(self):
        self.ready_worker.start()
        self.expiry_worker.start()

    def stop(self, timeout: Optional[float] = 5):
        self.ready_worker.stop(timeout)
        self.expiry_worker.stop(timeout)

    def trigger_ready_scan(self):
        return self.ready_worker.run_once()

    def trigger_expiry_sweep(self):
        return self.expiry_worker.run_once()

    def status(self) -> Dict[str, Dict[str, object]]:
        def describe(worker: PeriodicWorker):
            return {
                "running": worker.is_running,
                "interval_seconds": worker.interval_seconds,
                "runs": worker.runs,
                "last_result": worker.last_result.as_dict() if worker.last_result is not None else None,
            }

        return {
            "ready_scan": describe(self.ready_worker),
            "expiry_sweep": describe(self.expiry_worker),
        }
