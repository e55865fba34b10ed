"""Container network counters from the Docker Engine API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from vpnmeter.core.errors import SourceUnavailableError, StatsDecodeError

from .base import InterfaceCounters, StatsProvider

logger = logging.getLogger("vpnmeter.collector.docker")


def counters_from_stats(payload: Any) -> InterfaceCounters:
    """Sum ``rx_bytes``/``tx_bytes`` over the ``networks`` section of a stats document."""

    if not isinstance(payload, dict):
        raise StatsDecodeError(f"unexpected stats payload type {type(payload).__name__}")

    networks = payload.get("networks") or {}
    if not isinstance(networks, dict):
        raise StatsDecodeError("stats payload has a malformed 'networks' section")

    rx_total = 0
    tx_total = 0
    for name, interface in networks.items():
        try:
            rx_total += int(interface.get("rx_bytes", 0))
            tx_total += int(interface.get("tx_bytes", 0))
        except (AttributeError, TypeError, ValueError) as exc:
            raise StatsDecodeError(f"bad counters for interface {name!r}: {exc}") from exc
    return InterfaceCounters(rx_bytes=rx_total, tx_bytes=tx_total)


class DockerStatsProvider(StatsProvider):
    """One-shot ``/containers/{name}/stats`` reads over the Docker unix socket."""

    def __init__(
        self,
        container_name: str,
        socket_path: Path = Path("/var/run/docker.sock"),
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.container_name = container_name
        self._client = client or httpx.Client(
            transport=httpx.HTTPTransport(uds=str(socket_path)),
            base_url="http://docker",
            timeout=timeout,
        )

    def read_counters(self) -> InterfaceCounters:
        try:
            response = self._client.get(
                f"/containers/{self.container_name}/stats",
                params={"stream": "false", "one-shot": "true"},
            )
        except httpx.ConnectError as exc:
            logger.debug("Docker API unreachable for %s: %s", self.container_name, exc)
            return InterfaceCounters()
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(f"stats request for {self.container_name} failed: {exc}") from exc

        if response.status_code >= 500:
            raise SourceUnavailableError(
                f"Docker API returned {response.status_code} for {self.container_name}"
            )
        if response.status_code >= 400:
            logger.debug(
                "Container %s unavailable (status %s); reporting zero traffic",
                self.container_name,
                response.status_code,
            )
            return InterfaceCounters()

        try:
            payload = response.json()
        except ValueError as exc:
            raise StatsDecodeError(f"failed to decode container stats: {exc}") from exc
        return counters_from_stats(payload)

    def close(self) -> None:
        self._client.close()
