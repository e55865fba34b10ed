from datetime import datetime, timezone

import httpx
import pytest

from vpnmeter.accounting.models import BandwidthAccumulator
from vpnmeter.collectors.base import InterfaceCounters
from vpnmeter.collectors.docker_stats import DockerStatsProvider, counters_from_stats
from vpnmeter.collectors.ipsec import IPSecCollector, split_delta
from vpnmeter.core.errors import SourceUnavailableError, StatsDecodeError

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def combined(total):
    return InterfaceCounters(rx_bytes=total, tx_bytes=0)


def test_first_reading_only_sets_baseline(stats_provider):
    collector = IPSecCollector(stats_provider)
    accumulator = BandwidthAccumulator.fresh(NOW)

    delta = collector.merge(accumulator, combined(1000))

    assert delta == 0
    assert collector.baseline == 1000
    assert accumulator.ipsec.total_bytes == 0


def test_growth_is_split_evenly_between_directions(stats_provider):
    # The container only reports combined traffic; the split is an approximation.
    collector = IPSecCollector(stats_provider)
    accumulator = BandwidthAccumulator.fresh(NOW)

    collector.merge(accumulator, combined(1000))
    delta = collector.merge(accumulator, combined(1600))

    assert delta == 600
    assert accumulator.ipsec.total_bytes_sent == 300
    assert accumulator.ipsec.total_bytes_received == 300


def test_counter_drop_skips_cycle_and_rebaselines(stats_provider):
    collector = IPSecCollector(stats_provider)
    accumulator = BandwidthAccumulator.fresh(NOW)

    collector.merge(accumulator, combined(5000))
    assert collector.merge(accumulator, combined(200)) == 0
    assert collector.baseline == 200
    assert accumulator.ipsec.total_bytes == 0

    collector.merge(accumulator, combined(700))
    assert accumulator.ipsec.total_bytes == 500


def test_zero_reading_clears_baseline(stats_provider):
    collector = IPSecCollector(stats_provider)
    accumulator = BandwidthAccumulator.fresh(NOW)
    collector.merge(accumulator, combined(10_000_000_000))

    assert collector.merge(accumulator, combined(0)) == 0
    assert collector.baseline is None

    collector.merge(accumulator, combined(10_000_000_100))
    assert accumulator.ipsec.total_bytes == 0
    assert collector.baseline == 10_000_000_100


def test_odd_delta_keeps_every_byte():
    assert split_delta(7) == (3, 4)
    assert sum(split_delta(1)) == 1


def test_reset_baseline_requires_a_fresh_reading(stats_provider):
    collector = IPSecCollector(stats_provider)
    accumulator = BandwidthAccumulator.fresh(NOW)
    collector.merge(accumulator, combined(100))

    collector.reset_baseline()
    collector.merge(accumulator, combined(900))

    assert accumulator.ipsec.total_bytes == 0
    assert collector.baseline == 900


def test_live_metrics_map_tx_to_sent():
    metrics = IPSecCollector.live_metrics(InterfaceCounters(rx_bytes=10, tx_bytes=30))

    assert metrics.total_bytes_sent == 30
    assert metrics.total_bytes_received == 10


def test_counters_from_stats_sums_all_interfaces():
    payload = {
        "networks": {
            "eth0": {"rx_bytes": 1000, "tx_bytes": 400},
            "eth1": {"rx_bytes": 24, "tx_bytes": 76},
        }
    }

    counters = counters_from_stats(payload)

    assert counters == InterfaceCounters(rx_bytes=1024, tx_bytes=476)


def test_counters_from_stats_without_networks_is_zero():
    assert counters_from_stats({"read": "0001-01-01T00:00:00Z"}).combined == 0


def test_counters_from_stats_rejects_garbage():
    with pytest.raises(StatsDecodeError):
        counters_from_stats(["not", "a", "dict"])
    with pytest.raises(StatsDecodeError):
        counters_from_stats({"networks": {"eth0": {"rx_bytes": "lots"}}})


def docker_provider(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://docker")
    return DockerStatsProvider("ipsec-test", client=client)


def test_docker_provider_reads_container_stats():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["stream"] = request.url.params.get("stream")
        return httpx.Response(200, json={"networks": {"eth0": {"rx_bytes": 5, "tx_bytes": 7}}})

    counters = docker_provider(handler).read_counters()

    assert counters == InterfaceCounters(rx_bytes=5, tx_bytes=7)
    assert seen == {"path": "/containers/ipsec-test/stats", "stream": "false"}


def test_docker_provider_missing_container_reads_zero():
    provider = docker_provider(lambda request: httpx.Response(404, json={"message": "No such container"}))

    assert provider.read_counters() == InterfaceCounters()


def test_docker_provider_unreachable_daemon_reads_zero():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert docker_provider(handler).read_counters() == InterfaceCounters()


def test_docker_provider_undecodable_body_raises():
    provider = docker_provider(lambda request: httpx.Response(200, content=b"{not json"))

    with pytest.raises(StatsDecodeError):
        provider.read_counters()


def test_docker_provider_timeout_is_a_failed_read():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(SourceUnavailableError):
        docker_provider(handler).read_counters()


def test_docker_provider_server_error_is_a_failed_read():
    provider = docker_provider(lambda request: httpx.Response(500, json={"message": "daemon busy"}))

    with pytest.raises(SourceUnavailableError):
        provider.read_counters()


def test_transient_docker_failure_keeps_the_baseline():
    replies = iter([10_000_000_000, None, 10_000_000_100])

    def handler(request: httpx.Request) -> httpx.Response:
        total = next(replies)
        if total is None:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"networks": {"eth0": {"rx_bytes": total, "tx_bytes": 0}}})

    collector = IPSecCollector(docker_provider(handler))
    accumulator = BandwidthAccumulator.fresh(NOW)

    collector.merge(accumulator, collector.read_counters())
    with pytest.raises(SourceUnavailableError):
        collector.read_counters()
    collector.merge(accumulator, collector.read_counters())

    assert accumulator.ipsec.total_bytes == 100
