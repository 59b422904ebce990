from __future__ import annotations

import json
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from dashma_monitor.api import create_app
from dashma_monitor.config import MonitorConfig
from dashma_monitor.models import ProbeResult
from dashma_monitor.service import MonitorService


def _wait_for(client: TestClient, predicate, timeout: float = 3.0) -> dict:
    deadline = time.monotonic() + timeout
    statuses: dict = {}
    while time.monotonic() < deadline:
        statuses = client.get("/api/public/monitoring/status").json()
        if predicate(statuses):
            return statuses
        time.sleep(0.05)
    return statuses


@pytest.fixture()
def document_path(tmp_path: Path, dashboard_document) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(dashboard_document), encoding="utf-8")
    return path


@pytest.fixture()
def client(document_path: Path, fake_probe):
    config = MonitorConfig(config_document_path=str(document_path), test_timeout_ms=700)
    probe_double = fake_probe(default=ProbeResult(alive=True, latency_ms=42))
    service = MonitorService(config, probe_func=probe_double)
    app = create_app(config, service=service)
    with TestClient(app) as test_client:
        test_client.probe = probe_double
        yield test_client


def test_health_reports_running_service(client: TestClient) -> None:
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["running"] is True
    assert body["targets"] == 4


def test_bulk_status_polling(client: TestClient) -> None:
    statuses = _wait_for(client, lambda s: len(s) == 4)
    assert set(statuses) == {"link-1", "link-2", "widget-w1-s1", "widget-w1-s2"}
    assert statuses["link-1"]["status"] == "online"
    assert statuses["link-1"]["latencyMs"] == 42


def test_single_status_and_not_found(client: TestClient) -> None:
    _wait_for(client, lambda s: "link-2" in s)
    resp = client.get("/api/monitoring/status/link-2")
    assert resp.status_code == 200
    assert resp.json()["host"] == "10.0.0.5"

    resp = client.get("/api/monitoring/status/link-999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "host_not_found"


def test_force_check(client: TestClient) -> None:
    _wait_for(client, lambda s: "widget-w1-s1" in s)
    client.probe.default = ProbeResult(alive=False, error="timeout")

    resp = client.post("/api/monitoring/check/widget-w1-s1")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "offline"
    assert body["consecutiveFailures"] == 1

    assert client.post("/api/monitoring/check/widget-x-y").status_code == 404


def test_ad_hoc_test_endpoint(client: TestClient) -> None:
    statuses = _wait_for(client, lambda s: len(s) == 4)

    resp = client.post("/api/monitoring/test", json={"host": "10.0.0.2", "port": 8006})
    assert resp.status_code == 200
    body = resp.json()
    assert body["method"] == "TCP"
    assert body["status"] == "online"
    assert body["latencyMs"] == 42
    assert client.probe.calls[-1] == ("10.0.0.2", 8006, 700)

    after = client.get("/api/public/monitoring/status").json()
    assert after["widget-w1-s1"] == statuses["widget-w1-s1"]


def test_ad_hoc_test_validates_input(client: TestClient) -> None:
    assert client.post("/api/monitoring/test", json={"host": ""}).status_code == 422
    assert client.post("/api/monitoring/test", json={"host": "a", "port": 70000}).status_code == 422
    assert client.post("/api/monitoring/test", json={"host": "   "}).status_code == 400


def test_refresh_picks_up_document_changes(client: TestClient, document_path: Path) -> None:
    _wait_for(client, lambda s: len(s) == 4)
    document = json.loads(document_path.read_text(encoding="utf-8"))
    document["widgets"][0]["enabled"] = False
    document_path.write_text(json.dumps(document), encoding="utf-8")

    resp = client.post("/api/monitoring/refresh")
    assert resp.status_code == 200
    assert sorted(resp.json()["removed"]) == ["widget-w1-s1", "widget-w1-s2"]

    statuses = client.get("/api/public/monitoring/status").json()
    assert set(statuses) == {"link-1", "link-2"}

    targets = client.get("/api/monitoring/targets").json()
    assert [t["id"] for t in targets["targets"]] == ["link-1", "link-2"]
    assert targets["pollSeconds"] == 30


def test_refresh_unchanged_document(client: TestClient) -> None:
    resp = client.post("/api/monitoring/refresh")
    assert resp.json() == {"added": [], "removed": [], "rescheduled": [], "unchanged": 4}


def test_missing_document_starts_with_no_targets(tmp_path: Path, fake_probe) -> None:
    config = MonitorConfig(config_document_path=str(tmp_path / "missing.json"))
    app = create_app(config, service=MonitorService(config, probe_func=fake_probe()))
    with TestClient(app) as test_client:
        assert test_client.get("/api/public/monitoring/status").json() == {}
        assert test_client.get("/health").json()["targets"] == 0
