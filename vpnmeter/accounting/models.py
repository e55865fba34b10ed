"""Dataclasses representing accumulated bandwidth state and derived views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

BYTES_PER_MB = 1024 * 1024


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def bytes_to_mb(value: int) -> float:
    return value / BYTES_PER_MB


def _dump_datetime(value: datetime) -> str:
    return value.isoformat()


def _load_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class AccumulatedData:
    """Cumulative counters for one protocol since the last reset."""

    total_bytes_sent: int = 0
    total_bytes_received: int = 0
    session_count: int = 0

    @property
    def total_bytes(self) -> int:
        return self.total_bytes_sent + self.total_bytes_received

    @property
    def total_bandwidth_mb(self) -> float:
        return bytes_to_mb(self.total_bytes)

    def add(self, sent: int, received: int) -> None:
        if sent < 0 or received < 0:
            raise ValueError(f"negative byte delta (sent={sent}, received={received})")
        self.total_bytes_sent += sent
        self.total_bytes_received += received

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_bytes_sent": self.total_bytes_sent,
            "total_bytes_received": self.total_bytes_received,
            # Written for readers of the file; recomputed on load.
            "total_bandwidth_mb": self.total_bandwidth_mb,
            "session_count": self.session_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccumulatedData":
        return cls(
            total_bytes_sent=int(data.get("total_bytes_sent", 0)),
            total_bytes_received=int(data.get("total_bytes_received", 0)),
            session_count=int(data.get("session_count", 0)),
        )


@dataclass(slots=True)
class ClientState:
    """One live OpenVPN session as reported by the most recent poll."""

    common_name: str
    real_address: str
    bytes_sent: int
    bytes_received: int
    connected_since: datetime
    last_seen_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "common_name": self.common_name,
            "real_address": self.real_address,
            "bytes_sent": self.bytes_sent,
            "bytes_received": self.bytes_received,
            "connected_since": _dump_datetime(self.connected_since),
            "last_seen_at": _dump_datetime(self.last_seen_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClientState":
        return cls(
            common_name=str(data["common_name"]),
            real_address=str(data.get("real_address", "")),
            bytes_sent=int(data["bytes_sent"]),
            bytes_received=int(data["bytes_received"]),
            connected_since=_load_datetime(data["connected_since"]),
            last_seen_at=_load_datetime(data["last_seen_at"]),
        )


@dataclass(slots=True)
class BandwidthAccumulator:
    """Root persisted record: running totals for both protocols plus live sessions."""

    last_updated: datetime
    last_reset_at: datetime
    openvpn: AccumulatedData = field(default_factory=AccumulatedData)
    ipsec: AccumulatedData = field(default_factory=AccumulatedData)
    client_states: dict[str, ClientState] = field(default_factory=dict)

    @classmethod
    def fresh(cls, now: datetime | None = None) -> "BandwidthAccumulator":
        """Return a zeroed accumulator stamped with ``now``."""

        now = now or utcnow()
        return cls(last_updated=now, last_reset_at=now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_updated": _dump_datetime(self.last_updated),
            "last_reset_at": _dump_datetime(self.last_reset_at),
            "openvpn": self.openvpn.to_dict(),
            "ipsec": self.ipsec.to_dict(),
            "client_states": {name: state.to_dict() for name, state in self.client_states.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BandwidthAccumulator":
        """Decode a persisted document; malformed input raises ``KeyError``, ``TypeError``, ``ValueError`` or ``AttributeError``."""

        if not isinstance(data, Mapping):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        raw_clients = data.get("client_states") or {}
        return cls(
            last_updated=_load_datetime(data["last_updated"]),
            last_reset_at=_load_datetime(data["last_reset_at"]),
            openvpn=AccumulatedData.from_dict(data.get("openvpn") or {}),
            ipsec=AccumulatedData.from_dict(data.get("ipsec") or {}),
            client_states={name: ClientState.from_dict(state) for name, state in raw_clients.items()},
        )


@dataclass(slots=True)
class OpenVPNMetrics:
    total_bytes_sent: int
    total_bytes_received: int
    total_bandwidth_mb: float
    active_clients: int
    session_count: int = 0


@dataclass(slots=True)
class IPSecMetrics:
    total_bytes_sent: int
    total_bytes_received: int
    total_bandwidth_mb: float


@dataclass(slots=True)
class BandwidthMetrics:
    """Read-only view handed to the transport layer."""

    timestamp: datetime
    openvpn: OpenVPNMetrics
    ipsec: IPSecMetrics
    combined_total_mb: float
    last_reset_at: datetime | None = None

    @classmethod
    def from_accumulator(cls, accumulator: BandwidthAccumulator) -> "BandwidthMetrics":
        openvpn = OpenVPNMetrics(
            total_bytes_sent=accumulator.openvpn.total_bytes_sent,
            total_bytes_received=accumulator.openvpn.total_bytes_received,
            total_bandwidth_mb=accumulator.openvpn.total_bandwidth_mb,
            active_clients=len(accumulator.client_states),
            session_count=accumulator.openvpn.session_count,
        )
        ipsec = IPSecMetrics(
            total_bytes_sent=accumulator.ipsec.total_bytes_sent,
            total_bytes_received=accumulator.ipsec.total_bytes_received,
            total_bandwidth_mb=accumulator.ipsec.total_bandwidth_mb,
        )
        return cls(
            timestamp=accumulator.last_updated,
            openvpn=openvpn,
            ipsec=ipsec,
            combined_total_mb=openvpn.total_bandwidth_mb + ipsec.total_bandwidth_mb,
            last_reset_at=accumulator.last_reset_at,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "timestamp": _dump_datetime(self.timestamp),
            "openvpn": {
                "total_bytes_sent": self.openvpn.total_bytes_sent,
                "total_bytes_received": self.openvpn.total_bytes_received,
                "total_bandwidth_mb": self.openvpn.total_bandwidth_mb,
                "active_clients": self.openvpn.active_clients,
                "session_count": self.openvpn.session_count,
            },
            "ipsec": {
                "total_bytes_sent": self.ipsec.total_bytes_sent,
                "total_bytes_received": self.ipsec.total_bytes_received,
                "total_bandwidth_mb": self.ipsec.total_bandwidth_mb,
            },
            "combined_total_mb": self.combined_total_mb,
        }
        if self.last_reset_at is not None:
            payload["last_reset_at"] = _dump_datetime(self.last_reset_at)
        return payload
