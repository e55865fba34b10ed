"""Lightweight in-memory collection-cycle metrics."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class CycleSnapshot:
    cycles_total: int
    cycles_failed: int
    last_duration_seconds: float | None
    last_success_at: datetime | None
    last_error: str | None

    @property
    def healthy(self) -> bool:
        return self.last_error is None


class CycleMetrics:
    """Thread-safe counters describing the background collection loop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cycles_total = 0
        self._cycles_failed = 0
        self._last_duration: float | None = None
        self._last_success_at: datetime | None = None
        self._last_error: str | None = None

    def record_success(self, duration_seconds: float) -> None:
        with self._lock:
            self._cycles_total += 1
            self._last_duration = duration_seconds
            self._last_success_at = datetime.now(timezone.utc)
            self._last_error = None

    def record_failure(self, duration_seconds: float, error: BaseException) -> None:
        with self._lock:
            self._cycles_total += 1
            self._cycles_failed += 1
            self._last_duration = duration_seconds
            self._last_error = f"{type(error).__name__}: {error}"

    def snapshot(self) -> CycleSnapshot:
        with self._lock:
            return CycleSnapshot(
                cycles_total=self._cycles_total,
                cycles_failed=self._cycles_failed,
                last_duration_seconds=self._last_duration,
                last_success_at=self._last_success_at,
                last_error=self._last_error,
            )
