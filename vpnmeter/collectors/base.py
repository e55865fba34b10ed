"""Base types for traffic data sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class InterfaceCounters:
    """Received/transmitted byte counters summed over every interface of a container."""

    rx_bytes: int = 0
    tx_bytes: int = 0

    @property
    def combined(self) -> int:
        return self.rx_bytes + self.tx_bytes


class StatsProvider(ABC):
    """Point-in-time network counters for an isolated execution context."""

    @abstractmethod
    def read_counters(self) -> InterfaceCounters:
        """Return current counters. A context that is absent or stopped reads as zero."""

    def close(self) -> None:
        """Release any held connection resources."""
