"""
OpenVPN status-file parsing and per-session delta accounting.

The status file (``status-version 2``) lists one ``CLIENT_LIST`` record per
connected client:

  CLIENT_LIST,alice,203.0.113.7:51234,10.8.0.2,,18345,92710,2026-10-19 08:12:44,UNDEF,4,0

Fields used: common name, real address, bytes received, bytes sent and the
connected-since timestamp. Counters are cumulative per session, so traffic is
derived by diffing consecutive polls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from vpnmeter.accounting.models import AccumulatedData, BandwidthAccumulator, ClientState, OpenVPNMetrics, bytes_to_mb
from vpnmeter.core.errors import SourceUnavailableError

logger = logging.getLogger("vpnmeter.collector.openvpn")

CLIENT_LIST_TAG = "CLIENT_LIST"
CONNECTED_SINCE_FORMAT = "%Y-%m-%d %H:%M:%S"
MIN_FIELDS = 8

# Positions within a CLIENT_LIST record.
FIELD_COMMON_NAME = 1
FIELD_REAL_ADDRESS = 2
FIELD_BYTES_RECEIVED = 5
FIELD_BYTES_SENT = 6
FIELD_CONNECTED_SINCE = 7


class StatusFileSource:
    """Reads the full text of the OpenVPN status file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> str | None:
        """Return the file contents, or ``None`` when the file does not exist."""

        try:
            return self.path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            logger.debug("Status file %s not found; treating as no active clients", self.path)
            return None
        except OSError as exc:
            raise SourceUnavailableError(f"cannot read OpenVPN status file {self.path}: {exc}") from exc


def _parse_connected_since(value: str, fallback: datetime) -> datetime:
    try:
        return datetime.strptime(value.strip(), CONNECTED_SINCE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return fallback


def parse_client_list(text: str | None, observed_at: datetime) -> dict[str, ClientState]:
    """Parse ``CLIENT_LIST`` records into client states keyed by common name.

    Malformed records are skipped. A later record with the same common name
    replaces an earlier one.
    """

    clients: dict[str, ClientState] = {}
    if not text:
        return clients

    skipped = 0
    for line in text.splitlines():
        fields = line.rstrip("\r").split(",")
        if fields[0] != CLIENT_LIST_TAG:
            continue
        if len(fields) < MIN_FIELDS:
            skipped += 1
            continue

        common_name = fields[FIELD_COMMON_NAME].strip()
        try:
            bytes_received = int(fields[FIELD_BYTES_RECEIVED])
            bytes_sent = int(fields[FIELD_BYTES_SENT])
        except ValueError:
            skipped += 1
            continue
        if not common_name or bytes_received < 0 or bytes_sent < 0:
            skipped += 1
            continue

        clients[common_name] = ClientState(
            common_name=common_name,
            real_address=fields[FIELD_REAL_ADDRESS].strip(),
            bytes_sent=bytes_sent,
            bytes_received=bytes_received,
            connected_since=_parse_connected_since(fields[FIELD_CONNECTED_SINCE], observed_at),
            last_seen_at=observed_at,
        )

    if skipped:
        logger.debug("Skipped %d malformed CLIENT_LIST records", skipped)
    return clients


@dataclass(slots=True)
class SessionDeltaResult:
    """What one poll contributed to the OpenVPN totals."""

    bytes_sent: int = 0
    bytes_received: int = 0
    continued: int = 0
    started: int = 0
    ended: int = 0
    rollovers: int = 0


def apply_session_deltas(
    totals: AccumulatedData,
    previous: Mapping[str, ClientState],
    current: Mapping[str, ClientState],
) -> SessionDeltaResult:
    """Fold the difference between two polls into ``totals``.

    Continuing sessions add their counter growth; a counter that went down is
    taken as a restarted session and its whole new value counts. Sessions
    missing from ``current`` have ended and add their last-known counters,
    since a session's first sighting never contributes a delta. New sessions
    only establish a baseline.
    """

    result = SessionDeltaResult()

    for name, state in current.items():
        before = previous.get(name)
        if before is None:
            result.started += 1
            continue

        delta_sent = state.bytes_sent - before.bytes_sent
        delta_received = state.bytes_received - before.bytes_received
        if delta_sent < 0:
            delta_sent = state.bytes_sent
            result.rollovers += 1
        if delta_received < 0:
            delta_received = state.bytes_received
            result.rollovers += 1

        totals.add(delta_sent, delta_received)
        result.bytes_sent += delta_sent
        result.bytes_received += delta_received
        result.continued += 1

    for name, before in previous.items():
        if name in current:
            continue
        totals.add(before.bytes_sent, before.bytes_received)
        totals.session_count += 1
        result.bytes_sent += before.bytes_sent
        result.bytes_received += before.bytes_received
        result.ended += 1

    return result


def summarize_clients(clients: Mapping[str, ClientState]) -> OpenVPNMetrics:
    """Instantaneous totals over the sessions currently listed in the status file."""

    sent = sum(state.bytes_sent for state in clients.values())
    received = sum(state.bytes_received for state in clients.values())
    return OpenVPNMetrics(
        total_bytes_sent=sent,
        total_bytes_received=received,
        total_bandwidth_mb=bytes_to_mb(sent + received),
        active_clients=len(clients),
    )


class OpenVPNCollector:
    """Turns successive status-file snapshots into accumulated OpenVPN traffic."""

    def __init__(self, source: StatusFileSource) -> None:
        self.source = source

    def read_clients(self, observed_at: datetime) -> dict[str, ClientState]:
        """Read and parse the current status file. Raises ``SourceUnavailableError``."""

        return parse_client_list(self.source.read(), observed_at)

    def merge(self, accumulator: BandwidthAccumulator, current: dict[str, ClientState]) -> SessionDeltaResult:
        """Apply ``current`` to ``accumulator`` and make it the live session map."""

        result = apply_session_deltas(accumulator.openvpn, accumulator.client_states, current)
        accumulator.client_states = current
        logger.debug(
            "OpenVPN merge: +%d sent +%d received (continued=%d started=%d ended=%d rollovers=%d)",
            result.bytes_sent,
            result.bytes_received,
            result.continued,
            result.started,
            result.ended,
            result.rollovers,
        )
        return result
