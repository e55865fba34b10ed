"""Fixtures wiring the FastAPI app to temporary storage and a mocked Docker API."""

import httpx
import pytest
from fastapi.testclient import TestClient

from vpnmeter.accounting.service import BandwidthService
from vpnmeter.accounting.store import JsonFileAccumulatorStore
from vpnmeter.collectors import DockerStatsProvider, IPSecCollector, OpenVPNCollector, StatusFileSource
from vpnmeter.core.config import Settings
from vpnmeter.main import create_app


class DockerStub:
    """Mock transport handler serving a settable combined counter."""

    def __init__(self) -> None:
        self.rx_bytes = 0
        self.tx_bytes = 0
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"message": "No such container"})
        return httpx.Response(
            200,
            json={"networks": {"eth0": {"rx_bytes": self.rx_bytes, "tx_bytes": self.tx_bytes}}},
        )


@pytest.fixture()
def docker_stub():
    return DockerStub()


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        storage_path=tmp_path / "storage",
        openvpn_status_path=tmp_path / "status.log",
        collector_enabled=False,
        lock_retry_delay_seconds=0,
        auth_token=None,
    )


@pytest.fixture()
def make_app(settings, docker_stub):
    def _make(app_settings=None):
        app_settings = app_settings or settings
        provider = DockerStatsProvider(
            app_settings.ipsec_container_name,
            client=httpx.Client(transport=httpx.MockTransport(docker_stub), base_url="http://docker"),
        )
        service = BandwidthService(
            JsonFileAccumulatorStore(app_settings.accumulator_path, retry_delay=0),
            OpenVPNCollector(StatusFileSource(app_settings.openvpn_status_path)),
            IPSecCollector(provider),
        )
        return create_app(app_settings, service=service)

    return _make


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def service(app):
    return app.state.bandwidth_service
