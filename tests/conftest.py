from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

import pytest
import structlog

from dashma_monitor.models import LinkOrigin, MonitorTarget, ProbeResult, WidgetServerOrigin


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


class FakeProbe:
    """Scripted stand-in for ``dashma_monitor.probe.probe``.

    Results are taken from ``script`` (per host, in order) and fall back to
    ``default`` once a host's script is exhausted.
    """

    def __init__(
        self,
        default: ProbeResult | None = None,
        script: dict[str, list[ProbeResult]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.default = default or ProbeResult(alive=True, latency_ms=42)
        self.script = {host: list(results) for host, results in (script or {}).items()}
        self.delay = delay
        self.calls: list[tuple[str, int | None, int]] = []
        self.active: dict[str, int] = {}
        self.max_active: dict[str, int] = {}

    def calls_for(self, host: str) -> int:
        return sum(1 for call in self.calls if call[0] == host)

    async def __call__(self, host: str, port: int | None, timeout_ms: int) -> ProbeResult:
        self.calls.append((host, port, timeout_ms))
        self.active[host] = self.active.get(host, 0) + 1
        self.max_active[host] = max(self.max_active.get(host, 0), self.active[host])
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            queue = self.script.get(host)
            if queue:
                return queue.pop(0)
            return self.default
        finally:
            self.active[host] -= 1


@pytest.fixture()
def fake_probe() -> Callable[..., FakeProbe]:
    return FakeProbe


def make_link_target(link_id: str = "1", **overrides: Any) -> MonitorTarget:
    origin = LinkOrigin(link_id=link_id)
    values: dict[str, Any] = {
        "id": origin.target_id(),
        "host": f"host-{link_id}.example",
        "port": None,
        "interval_seconds": 60,
        "retries": 0,
        "timeout_ms": 200,
        "origin": origin,
    }
    values.update(overrides)
    return MonitorTarget(**values)


def make_widget_target(widget_id: str = "w1", server_id: str = "s1", **overrides: Any) -> MonitorTarget:
    origin = WidgetServerOrigin(widget_id=widget_id, server_id=server_id)
    values: dict[str, Any] = {
        "id": origin.target_id(),
        "host": f"{server_id}.lan",
        "port": 22,
        "interval_seconds": 60,
        "retries": 0,
        "timeout_ms": 200,
        "origin": origin,
    }
    values.update(overrides)
    return MonitorTarget(**values)


@pytest.fixture()
def link_target() -> Callable[..., MonitorTarget]:
    return make_link_target


@pytest.fixture()
def widget_target() -> Callable[..., MonitorTarget]:
    return make_widget_target


async def _eventually(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


@pytest.fixture()
def eventually() -> Callable[..., Any]:
    return _eventually


@pytest.fixture()
def dashboard_document() -> dict[str, Any]:
    return {
        "settings": {
            "siteName": "Dashma",
            "monitoringSettings": {"defaultInterval": 45, "timeout": 1500, "retries": 1},
        },
        "categories": [{"id": "c1", "name": "Home"}],
        "links": [
            {
                "id": "1",
                "name": "Router",
                "url": "http://192.168.1.1/admin",
                "monitoring": {"enabled": True},
            },
            {
                "id": "2",
                "name": "NAS",
                "url": "https://nas.lan:5001",
                "monitoring": {"enabled": True, "host": "10.0.0.5", "port": 5001, "interval": 30},
            },
            {
                "id": "3",
                "name": "Docs",
                "url": "https://docs.example.org",
                "monitoring": {"enabled": False},
            },
            {"id": "4", "name": "Plain", "url": "https://plain.example.org"},
        ],
        "widgets": [
            {
                "id": "w1",
                "type": "server-monitor",
                "enabled": True,
                "config": {
                    "servers": [
                        {"id": "s1", "name": "Proxmox", "host": "10.0.0.2", "port": 8006},
                        {"id": "s2", "name": "Pi", "host": "10.0.0.3", "interval": 10},
                    ]
                },
            },
            {
                "id": "w2",
                "type": "server-monitor",
                "enabled": False,
                "config": {"servers": [{"id": "s9", "host": "10.0.0.9"}]},
            },
            {"id": "w3", "type": "clock", "enabled": True, "config": {}},
        ],
    }
