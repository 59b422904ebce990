from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request

from dashma_monitor.api.schema import HostTestRequest, ReconcileResponse
from dashma_monitor.config import MonitorConfig
from dashma_monitor.config_store import JsonConfigStore
from dashma_monitor.service import MonitorService


def _service(request: Request) -> MonitorService:
    return request.app.state.monitor


def create_app(
    config: MonitorConfig | None = None,
    service: MonitorService | None = None,
    config_provider: Callable[[], Any] | None = None,
) -> FastAPI:
    config = config or MonitorConfig()
    monitor = service or MonitorService(config)
    provider = config_provider or JsonConfigStore(config.config_document_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await monitor.start(provider)
        try:
            yield
        finally:
            await monitor.stop()

    app = FastAPI(title="Dashma Host Monitor", version="0.1.0", lifespan=lifespan)
    app.state.settings = config
    app.state.monitor = monitor

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        summary = _service(request).status_summary()
        return {"status": "healthy", **summary}

    @app.get("/api/public/monitoring/status")
    def all_statuses(request: Request) -> dict[str, Any]:
        return _service(request).get_all_statuses()

    @app.get("/api/monitoring/status/{host_id}")
    def one_status(host_id: str, request: Request) -> dict[str, Any]:
        status = _service(request).get_status(host_id)
        if status is None:
            raise HTTPException(status_code=404, detail="host_not_found")
        return status

    @app.post("/api/monitoring/check/{host_id}")
    async def force_check(host_id: str, request: Request) -> dict[str, Any]:
        status = await _service(request).force_check(host_id)
        if status is None:
            raise HTTPException(status_code=404, detail="host_not_found")
        return status

    @app.post("/api/monitoring/test")
    async def test_host(body: HostTestRequest, request: Request) -> dict[str, Any]:
        host = body.host.strip()
        if not host:
            raise HTTPException(status_code=400, detail="host_required")
        return await _service(request).test_host(host, body.port)

    @app.post("/api/monitoring/refresh", response_model=ReconcileResponse)
    async def refresh(request: Request) -> ReconcileResponse:
        result = await _service(request).reconcile()
        if result is None:
            raise HTTPException(status_code=503, detail="monitor_not_running")
        return ReconcileResponse(**result.to_dict())

    @app.get("/api/monitoring/targets")
    def targets(request: Request) -> dict[str, Any]:
        items = [t.to_dict() for t in _service(request).scheduled_targets()]
        items.sort(key=lambda t: t["id"])
        return {"targets": items, "pollSeconds": request.app.state.settings.status_poll_seconds}

    return app
