"""Lifecycle and query facade used by the HTTP layer."""

from __future__ import annotations

from typing import Any, Callable

import structlog

from .config import MonitorConfig, MonitorDefaults
from .models import HostTestResult, MonitorTarget
from .probe import ProbeFunc, method_for, probe
from .resolver import resolve
from .scheduler import HostScheduler, ReconcileResult, Reconciler
from .status_cache import StatusCache


logger = structlog.get_logger(__name__)

ConfigProvider = Callable[[], Any]


class MonitorService:
    """Background host monitoring for the dashboard.

    ``start`` resolves targets from the config provider and schedules them;
    callers must invoke ``reconcile`` after every change to monitored links,
    widgets or monitoring settings. All monitoring state lives on this
    object, so independent instances never share timers or status.
    """

    def __init__(self, config: MonitorConfig | None = None, probe_func: ProbeFunc = probe):
        self.config = config or MonitorConfig()
        self.probe_func = probe_func
        self.cache = StatusCache()
        self.scheduler: HostScheduler | None = None
        self.reconciler: Reconciler | None = None
        self._config_provider: ConfigProvider | None = None

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None

    @property
    def defaults(self) -> MonitorDefaults:
        return MonitorDefaults.from_config(self.config)

    async def start(self, config_provider: ConfigProvider):
        if self.is_running:
            logger.warning("Monitor service already running")
            return
        if config_provider is None:
            raise ValueError("config_provider is required")

        self._config_provider = config_provider
        self.scheduler = HostScheduler(self.cache, probe_func=self.probe_func)
        self.reconciler = Reconciler(self.scheduler, self.cache)
        await self.scheduler.start()
        logger.info("Monitor service started")

        await self.reconcile()

    async def stop(self):
        if not self.is_running:
            return

        await self.reconciler.shutdown()
        self.cache.clear()
        self.scheduler = None
        self.reconciler = None
        self._config_provider = None
        logger.info("Monitor service stopped")

    def resolve_targets(self) -> list[MonitorTarget]:
        """Resolve the current target set from the config provider."""
        if self._config_provider is None:
            return []
        return resolve(self._config_provider(), self.defaults)

    async def reconcile(self) -> ReconcileResult | None:
        """Bring the schedule in line with the current configuration."""
        if not self.is_running:
            logger.debug("Reconcile requested while stopped, ignoring")
            return None
        reconciler = self.reconciler
        targets = self.resolve_targets()
        return await reconciler.reconcile(targets)

    def get_all_statuses(self) -> dict[str, dict[str, Any]]:
        return {host_id: record.to_dict() for host_id, record in self.cache.read_all().items()}

    def get_status(self, host_id: str) -> dict[str, Any] | None:
        record = self.cache.read_one(host_id)
        return record.to_dict() if record is not None else None

    async def force_check(self, host_id: str) -> dict[str, Any] | None:
        if not self.is_running:
            return None
        record = await self.scheduler.force_check(host_id)
        return record.to_dict() if record is not None else None

    async def test_host(self, host: str, port: int | None = None) -> dict[str, Any]:
        """Probe ``host`` once for a manual test. Nothing is cached or scheduled."""
        timeout_ms = self.config.test_timeout_ms
        if self.scheduler is not None:
            result = await self.scheduler.test_ad_hoc(host, port, timeout_ms)
        else:
            result = await self.probe_func(host, port, timeout_ms)

        test = HostTestResult.from_probe(host, port, result, method_for(port))
        logger.info("Tested host", host=host, port=port, status=test.status, latency_ms=test.latency_ms)
        return test.to_dict()

    def scheduled_targets(self) -> list[MonitorTarget]:
        if self.reconciler is None:
            return []
        return list(self.reconciler.scheduled.values())

    def status_summary(self) -> dict[str, Any]:
        summary: dict[str, Any] = {"running": self.is_running, "targets": len(self.scheduled_targets())}
        if self.scheduler is not None:
            summary["next_run"] = self.scheduler.get_scheduler_status()["next_run"]
        return summary
