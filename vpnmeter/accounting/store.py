"""Accumulator persistence: abstract interface and locked JSON file implementation."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Callable, Iterator

from vpnmeter.core.errors import LockContentionError, PersistenceError

from .models import BandwidthAccumulator

logger = logging.getLogger("vpnmeter.store")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 0.1


class AccumulatorStore(ABC):
    """Abstract interface for durable accumulator state."""

    @abstractmethod
    def load(self) -> BandwidthAccumulator | None:
        """Return the persisted accumulator, or ``None`` when there is no usable prior state."""

    @abstractmethod
    def save(self, state: BandwidthAccumulator) -> None:
        """Durably replace the persisted accumulator with ``state``."""


@contextmanager
def locked_file(
    path: Path,
    *,
    exclusive: bool,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[IO[str]]:
    """Open ``path`` under a whole-file advisory ``flock`` and release it on exit.

    Shared mode opens read-only and raises ``FileNotFoundError`` when the file
    is absent. Exclusive mode opens for read/write without truncating, creating
    the file if needed; callers truncate once the lock is held. Open and lock
    failures are retried ``max_attempts`` times with a fixed ``retry_delay``.
    """

    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts!r}")

    mode = "a+" if exclusive else "r"
    operation = (fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH) | fcntl.LOCK_NB
    for attempt in range(1, max_attempts + 1):
        try:
            candidate = open(path, mode, encoding="utf-8")
        except FileNotFoundError:
            raise
        except OSError as exc:
            if attempt == max_attempts:
                raise PersistenceError(f"failed to open {path}: {exc}") from exc
            logger.debug("Open of %s failed (attempt %d/%d): %s", path, attempt, max_attempts, exc)
            sleep(retry_delay)
            continue

        try:
            fcntl.flock(candidate.fileno(), operation)
        except OSError as exc:
            candidate.close()
            if attempt == max_attempts:
                raise LockContentionError(
                    f"failed to acquire {'exclusive' if exclusive else 'shared'} lock on {path}: {exc}"
                ) from exc
            logger.debug("Lock on %s busy (attempt %d/%d)", path, attempt, max_attempts)
            sleep(retry_delay)
            continue

        handle = candidate
        break

    try:
        yield handle
    finally:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()


class JsonFileAccumulatorStore(AccumulatorStore):
    """Whole-document JSON persistence guarded by an advisory file lock."""

    def __init__(
        self,
        path: Path,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    def _lock(self, *, exclusive: bool):
        return locked_file(
            self.path,
            exclusive=exclusive,
            max_attempts=self.max_attempts,
            retry_delay=self.retry_delay,
        )

    def load(self) -> BandwidthAccumulator | None:
        try:
            with self._lock(exclusive=False) as handle:
                raw = handle.read()
        except FileNotFoundError:
            logger.info("No accumulator at %s", self.path)
            return None
        except UnicodeDecodeError as exc:
            logger.warning("Discarding undecodable accumulator at %s: %s", self.path, exc)
            return None
        except PersistenceError:
            raise
        except OSError as exc:
            raise PersistenceError(f"failed to read {self.path}: {exc}") from exc

        try:
            return BandwidthAccumulator.from_dict(json.loads(raw))
        except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as exc:
            logger.warning("Discarding undecodable accumulator at %s: %s", self.path, exc)
            return None

    def save(self, state: BandwidthAccumulator) -> None:
        payload = json.dumps(state.to_dict(), indent=2) + "\n"
        try:
            with self._lock(exclusive=True) as handle:
                handle.seek(0)
                handle.truncate()
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
        except PersistenceError:
            raise
        except OSError as exc:
            raise PersistenceError(f"failed to write {self.path}: {exc}") from exc
        logger.debug("Accumulator saved to %s (%d bytes)", self.path, len(payload))
