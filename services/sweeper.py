"""Periodic expiration of idle metrics."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Optional

from datastore.registry import SensorRegistry

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """Unregisters metrics idle for longer than ``timeout`` seconds.

    Every tick scans the whole registry; sensor counts in this domain stay in
    the tens to low hundreds. The tick period is a quarter of the timeout.
    """

    def __init__(self, registry: SensorRegistry, timeout: float) -> None:
        if timeout <= 0:
            raise ValueError("Expiration timeout must be positive.")
        self.registry = registry
        self.timeout = timeout
        self.period = timeout / 4
        self._stop = Event()
        self._thread: Optional[Thread] = None

    def sweep(self) -> int:
        expired = 0
        for metric in self.registry.metrics():
            if metric.enforce_expiration(self.timeout):
                expired += 1
        if expired:
            logger.info("Expired idle metrics", extra={"expired_count": expired, "timeout": self.timeout})
        return expired

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="expiration-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            logger.debug("Checking expired metrics", extra={"timeout": self.timeout})
            self.sweep()
            self._stop.wait(self.period)
