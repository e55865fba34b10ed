"""Pytest unit test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from vpnmeter.accounting.service import BandwidthService
from vpnmeter.accounting.store import JsonFileAccumulatorStore
from vpnmeter.collectors import IPSecCollector, OpenVPNCollector, StatusFileSource
from vpnmeter.collectors.base import InterfaceCounters, StatsProvider


class FakeStatsProvider(StatsProvider):
    """Returns whatever counters the test last set."""

    def __init__(self) -> None:
        self.counters = InterfaceCounters()
        self.error: Exception | None = None
        self.closed = False

    def set_combined(self, total: int) -> None:
        self.counters = InterfaceCounters(rx_bytes=total - total // 2, tx_bytes=total // 2)

    def read_counters(self) -> InterfaceCounters:
        if self.error is not None:
            raise self.error
        return self.counters

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 60) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


def render_status(clients) -> str:
    """Build an OpenVPN status-version 2 document from (name, sent, received) tuples."""

    lines = [
        "TITLE,OpenVPN 2.6.12",
        "HEADER,CLIENT_LIST,Common Name,Real Address,Virtual Address,Virtual IPv6 Address,"
        "Bytes Received,Bytes Sent,Connected Since,Connected Since (time_t),Username,Client ID,Peer ID",
    ]
    for index, (name, sent, received) in enumerate(clients):
        lines.append(
            f"CLIENT_LIST,{name},203.0.113.{index + 1}:5000{index},10.8.0.{index + 2},,"
            f"{received},{sent},2026-10-19 08:00:00,1760860800,UNDEF,{index},{index}"
        )
    lines.append("END")
    return "\n".join(lines) + "\n"


@pytest.fixture()
def clock():
    return FakeClock(datetime(2026, 10, 19, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture()
def status_path(tmp_path):
    return tmp_path / "openvpn" / "status.log"


@pytest.fixture()
def write_status(status_path):
    def _write(*clients) -> None:
        status_path.parent.mkdir(parents=True, exist_ok=True)
        status_path.write_text(render_status(clients), encoding="utf-8")

    return _write


@pytest.fixture()
def stats_provider():
    return FakeStatsProvider()


@pytest.fixture()
def accumulator_path(tmp_path):
    return tmp_path / "bandwidth" / "accumulator.json"


@pytest.fixture()
def store(accumulator_path):
    return JsonFileAccumulatorStore(accumulator_path, retry_delay=0)


@pytest.fixture()
def build_service(store, status_path, stats_provider, clock):
    def _build(backing_store=None) -> BandwidthService:
        return BandwidthService(
            backing_store or store,
            OpenVPNCollector(StatusFileSource(status_path)),
            IPSecCollector(stats_provider),
            clock=clock,
        )

    return _build


@pytest.fixture()
def service(build_service):
    return build_service()
