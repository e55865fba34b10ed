import time

from fastapi.testclient import TestClient


def test_lifespan_runs_and_stops_collection(make_app, settings, docker_stub):
    docker_stub.rx_bytes = 100
    app = make_app(settings.model_copy(update={"collector_enabled": True, "collection_interval_seconds": 0.01}))
    scheduler = app.state.scheduler

    with TestClient(app) as client:
        deadline = time.monotonic() + 5
        while scheduler.metrics.snapshot().cycles_total < 2 and time.monotonic() < deadline:
            time.sleep(0.01)

        payload = client.get("/ready").json()
        assert payload["components"]["collector"]["running"] is True
        assert payload["components"]["collector"]["cycles_total"] >= 2
        assert payload["status"] == "ok"

    assert not scheduler.running
    assert settings.accumulator_path.exists()


def test_persisted_totals_survive_app_restart(make_app, settings):
    settings.openvpn_status_path.write_text(
        "CLIENT_LIST,A,203.0.113.9:40000,10.8.0.9,,200,100,2026-10-19 08:00:00,0,UNDEF,1,1\n",
        encoding="utf-8",
    )
    first = make_app()
    first.state.bandwidth_service.collect_once()
    settings.openvpn_status_path.write_text("END\n", encoding="utf-8")
    first.state.bandwidth_service.collect_once()

    second = make_app()
    data = TestClient(second).get("/api/v1/bandwidth").json()["data"]

    assert data["openvpn"]["total_bytes_sent"] == 100
    assert data["openvpn"]["total_bytes_received"] == 200
    assert data["openvpn"]["session_count"] == 1
