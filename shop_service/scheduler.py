"""
scheduler.py — Daily Warranty Expiry Sweep

Runs WarrantyService.expire_stale_warranties() once a day at a fixed hour on a
background daemon thread. The thread is owned by the application: started by
the startup handler and stopped by the shutdown handler.

A failed run is logged and the scheduler waits for the next day's tick; there
is no retry in between.
"""

import logging
import threading
from datetime import datetime, timedelta

from . import config
from .warranties import WarrantyService

log = logging.getLogger(__name__)


def seconds_until_next_run(now: datetime, hour: int) -> float:
    """Seconds from now until the next occurrence of hour:00."""
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


class ExpirySweepScheduler:
    def __init__(self, warranty_service: WarrantyService, hour: int = None, clock=datetime.now):
        self.warranty_service = warranty_service
        self.hour = config.SWEEP_HOUR if hour is None else hour
        self.clock = clock
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Starts the sweep thread; calling it on a running scheduler does nothing."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_loop, name="warranty-expiry-sweep", daemon=True)
        self._thread.start()
        log.info(f"Warranty expiry sweep scheduled daily at {self.hour:02d}:00.")

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log.info("Warranty expiry sweep stopped.")

    def run_once(self) -> int:
        return self.warranty_service.expire_stale_warranties(self.clock().date())

    def _run_loop(self):
        while not self._stop.is_set():
            delay = seconds_until_next_run(self.clock(), self.hour)
            if self._stop.wait(delay):
                break
            try:
                self.run_once()
            except Exception as e:
                log.error(f"Warranty expiry sweep failed: {e}. Waiting for the next run.", exc_info=True)
