"""IPsec traffic accounting from container network counters."""

from __future__ import annotations

import logging

from vpnmeter.accounting.models import BandwidthAccumulator, IPSecMetrics, bytes_to_mb

from .base import InterfaceCounters, StatsProvider

logger = logging.getLogger("vpnmeter.collector.ipsec")


def split_delta(delta: int) -> tuple[int, int]:
    """Apportion a combined rx+tx delta between sent and received.

    The container only exposes combined interface traffic, so the 50/50 split
    is an approximation. The odd byte goes to received.
    """

    sent = delta // 2
    return sent, delta - sent


class IPSecCollector:
    """Diffs successive combined counter readings into accumulated IPsec traffic."""

    def __init__(self, provider: StatsProvider) -> None:
        self.provider = provider
        self._last_combined: int | None = None

    @property
    def baseline(self) -> int | None:
        return self._last_combined

    def read_counters(self) -> InterfaceCounters:
        return self.provider.read_counters()

    def merge(self, accumulator: BandwidthAccumulator, counters: InterfaceCounters) -> int:
        """Add the growth since the previous reading and return it.

        The first reading only sets the baseline. A reading below the baseline
        is a counter discontinuity (container restart): nothing is added and the
        baseline moves to the new value. A zero reading means the container is
        gone and clears the baseline, so its lifetime counter is never taken as
        growth when it comes back.
        """

        current = counters.combined
        previous = self._last_combined
        delta = 0

        if current == 0:
            if previous is not None:
                logger.info("IPsec container reported no traffic; clearing baseline")
            self._last_combined = None
            return delta

        if previous is None:
            logger.debug("IPsec baseline established at %d bytes", current)
        elif current >= previous:
            delta = current - previous
            sent, received = split_delta(delta)
            accumulator.ipsec.add(sent, received)
        else:
            logger.info("IPsec counters dropped from %d to %d; re-baselining", previous, current)

        self._last_combined = current
        return delta

    def reset_baseline(self) -> None:
        self._last_combined = None

    @staticmethod
    def live_metrics(counters: InterfaceCounters) -> IPSecMetrics:
        """Instantaneous container traffic; tx is what the server sent."""

        return IPSecMetrics(
            total_bytes_sent=counters.tx_bytes,
            total_bytes_received=counters.rx_bytes,
            total_bandwidth_mb=bytes_to_mb(counters.combined),
        )
