"""Bandwidth accounting service: owns the accumulator and serves snapshots."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from vpnmeter.collectors import DockerStatsProvider, IPSecCollector, OpenVPNCollector, StatusFileSource
from vpnmeter.collectors.openvpn import summarize_clients
from vpnmeter.core.config import Settings
from vpnmeter.core.errors import CollectionError, PersistenceError, SourceUnavailableError
from vpnmeter.core.locks import ReadWriteLock

from .models import BandwidthAccumulator, BandwidthMetrics, utcnow
from .store import AccumulatorStore, JsonFileAccumulatorStore

logger = logging.getLogger("vpnmeter.collector")


class BandwidthService:
    """Single owner of the in-memory accumulator.

    Collection cycles and resets take the write side of the lock; snapshot
    reads take the read side, so readers see either the state before a cycle
    or after it, never a half-merged one.
    """

    def __init__(
        self,
        store: AccumulatorStore,
        openvpn: OpenVPNCollector,
        ipsec: IPSecCollector,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.openvpn = openvpn
        self.ipsec = ipsec
        self._clock = clock
        self._lock = ReadWriteLock()
        self._accumulator = self._load_initial()

    @classmethod
    def from_settings(cls, settings: Settings) -> "BandwidthService":
        store = JsonFileAccumulatorStore(
            settings.accumulator_path,
            max_attempts=settings.lock_max_attempts,
            retry_delay=settings.lock_retry_delay_seconds,
        )
        provider = DockerStatsProvider(
            settings.ipsec_container_name,
            socket_path=settings.docker_socket_path,
            timeout=settings.docker_timeout_seconds,
        )
        return cls(
            store,
            OpenVPNCollector(StatusFileSource(settings.openvpn_status_path)),
            IPSecCollector(provider),
        )

    def _load_initial(self) -> BandwidthAccumulator:
        try:
            state = self.store.load()
        except PersistenceError as exc:
            logger.warning("Failed to load accumulator, initializing new one: %s", exc)
            state = None

        if state is None:
            state = BandwidthAccumulator.fresh(self._clock())
            logger.info("Starting with a fresh accumulator")
        else:
            logger.info(
                "Loaded accumulator (last_updated=%s, active_clients=%d)",
                state.last_updated.isoformat(),
                len(state.client_states),
            )
        return state

    def collect_once(self) -> None:
        """Run one collection cycle.

        Sources are read before the write lock is taken. A failing source only
        skips its own protocol for this cycle; the other is still merged and
        saved. Raises ``CollectionError`` if any step failed.
        """

        errors: list[Exception] = []
        observed_at = self._clock()

        try:
            clients = self.openvpn.read_clients(observed_at)
        except SourceUnavailableError as exc:
            logger.warning("Failed to read OpenVPN clients: %s", exc)
            errors.append(exc)
            clients = None

        try:
            counters = self.ipsec.read_counters()
        except SourceUnavailableError as exc:
            logger.warning("Failed to collect IPsec counters: %s", exc)
            errors.append(exc)
            counters = None

        if clients is None and counters is None:
            raise CollectionError(errors)

        with self._lock.write_locked():
            if clients is not None:
                self.openvpn.merge(self._accumulator, clients)
            if counters is not None:
                self.ipsec.merge(self._accumulator, counters)
            self._accumulator.last_updated = self._clock()

            try:
                self.store.save(self._accumulator)
            except PersistenceError as exc:
                logger.error("Failed to save accumulator: %s", exc)
                errors.append(exc)

        if errors:
            raise CollectionError(errors)

    def get_metrics(self) -> BandwidthMetrics:
        """Accumulated totals as of the most recently completed cycle."""

        with self._lock.read_locked():
            return BandwidthMetrics.from_accumulator(self._accumulator)

    def export_state(self) -> BandwidthAccumulator:
        """Return a detached copy of the accumulator."""

        with self._lock.read_locked():
            return BandwidthAccumulator.from_dict(self._accumulator.to_dict())

    def reset(self) -> datetime:
        """Zero every counter, persist the empty state and return the reset time.

        The new state is saved before it replaces the in-memory one; if saving
        fails the previous totals stay in place and ``PersistenceError`` is raised.
        """

        with self._lock.write_locked():
            fresh = BandwidthAccumulator.fresh(self._clock())
            self.store.save(fresh)
            self._accumulator = fresh
            self.ipsec.reset_baseline()

        logger.info("Bandwidth accumulator reset")
        return fresh.last_reset_at

    def live_metrics(self) -> BandwidthMetrics:
        """Instantaneous counters read straight from the sources, bypassing the accumulator."""

        now = self._clock()
        openvpn = summarize_clients(self.openvpn.read_clients(now))
        ipsec = IPSecCollector.live_metrics(self.ipsec.read_counters())
        return BandwidthMetrics(
            timestamp=now,
            openvpn=openvpn,
            ipsec=ipsec,
            combined_total_mb=openvpn.total_bandwidth_mb + ipsec.total_bandwidth_mb,
        )

    def close(self) -> None:
        self.ipsec.provider.close()
