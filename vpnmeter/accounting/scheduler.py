"""Fixed-interval background driver for collection cycles."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from vpnmeter.core.metrics import CycleMetrics

logger = logging.getLogger("vpnmeter.scheduler")


class CollectionScheduler:
    """Runs ``cycle`` every ``interval`` seconds on one background thread.

    Cycles never overlap: the next wait only starts once the current cycle has
    returned, so an overrunning cycle delays the following tick.
    """

    def __init__(
        self,
        cycle: Callable[[], object],
        metrics: CycleMetrics | None = None,
        *,
        name: str = "bandwidth-collector",
    ) -> None:
        self._cycle = cycle
        self.metrics = metrics or CycleMetrics()
        self._name = name
        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._cycle_count = 0

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")

        with self._state_lock:
            if self.running:
                raise RuntimeError("collection scheduler is already running")
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(interval, self._stop_event),
                name=self._name,
                daemon=True,
            )
            self._thread.start()

        logger.info("Bandwidth tracking started (interval=%ss)", interval)

    def _run(self, interval: float, stop_event: threading.Event) -> None:
        while not stop_event.wait(interval):
            self.run_cycle()
        logger.info("Bandwidth tracking stopped")

    def run_cycle(self) -> bool:
        """Execute one cycle, recording its outcome. Returns ``True`` on success."""

        self._cycle_count += 1
        cycle_number = self._cycle_count
        started = time.monotonic()
        try:
            self._cycle()
        except Exception as exc:  # noqa: BLE001 - retried on the next tick
            duration = time.monotonic() - started
            self.metrics.record_failure(duration, exc)
            logger.error("Cycle #%d failed to collect and accumulate bandwidth: %s", cycle_number, exc)
            return False

        duration = time.monotonic() - started
        self.metrics.record_success(duration)
        logger.debug("Cycle #%d completed in %.3fs", cycle_number, duration)
        return True

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to exit and wait for any in-flight cycle to finish.

        Safe to call more than once and when the scheduler was never started.
        """

        with self._state_lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()

        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Collection thread did not exit within %ss", timeout)
