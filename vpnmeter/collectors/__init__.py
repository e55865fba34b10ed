"""Collector package exports."""

from .base import InterfaceCounters, StatsProvider
from .docker_stats import DockerStatsProvider
from .ipsec import IPSecCollector
from .openvpn import OpenVPNCollector, StatusFileSource

__all__ = [
    "InterfaceCounters",
    "StatsProvider",
    "DockerStatsProvider",
    "IPSecCollector",
    "OpenVPNCollector",
    "StatusFileSource",
]
