"""Keep the host scheduler in step with the resolved target set."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog

from ..models import MonitorTarget
from ..resolver import dedupe_targets
from ..status_cache import StatusCache
from .host_scheduler import HostScheduler


logger = structlog.get_logger(__name__)


@dataclass
class ReconcileResult:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    rescheduled: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.rescheduled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": self.added,
            "removed": self.removed,
            "rescheduled": self.rescheduled,
            "unchanged": len(self.unchanged),
        }


class Reconciler:
    """Diffs the scheduled targets against a freshly resolved set.

    The reconciler remembers the parameters it scheduled each id with, so the
    status cache only ever holds observed status. Calls are serialized: a
    reconcile that arrives while another is cancelling jobs waits for it and
    then diffs against the state that call left behind.
    """

    def __init__(self, scheduler: HostScheduler, cache: StatusCache):
        self.scheduler = scheduler
        self.cache = cache
        self._scheduled: dict[str, MonitorTarget] = {}
        self._lock = asyncio.Lock()
        self.closed = False

    @property
    def scheduled(self) -> dict[str, MonitorTarget]:
        return dict(self._scheduled)

    async def reconcile(self, new_targets: Iterable[MonitorTarget]) -> ReconcileResult | None:
        """Apply the diff. Returns None once ``shutdown`` has run."""
        desired = {target.id: target for target in dedupe_targets(new_targets)}

        async with self._lock:
            if self.closed:
                logger.debug("Reconcile after shutdown, ignoring")
                return None
            result = await self._apply(desired)

        if result.changed:
            logger.info("Reconciled monitored hosts",
                        added=len(result.added),
                        removed=len(result.removed),
                        rescheduled=len(result.rescheduled),
                        unchanged=len(result.unchanged))
        return result

    async def _apply(self, desired: dict[str, MonitorTarget]) -> ReconcileResult:
        result = ReconcileResult()

        for host_id in [h for h in self._scheduled if h not in desired]:
            await self.scheduler.cancel(host_id)
            self.cache.remove(host_id)
            self._scheduled.pop(host_id, None)
            result.removed.append(host_id)

        for host_id, target in desired.items():
            current = self._scheduled.get(host_id)
            if current is None:
                await self.scheduler.schedule(target)
                result.added.append(host_id)
            elif current.probe_params() != target.probe_params():
                await self.scheduler.cancel(host_id)
                # A different machine starts with a clean history.
                if (current.host, current.port) != (target.host, target.port):
                    self.cache.remove(host_id)
                await self.scheduler.schedule(target)
                result.rescheduled.append(host_id)
            else:
                result.unchanged.append(host_id)
            self._scheduled[host_id] = target

        return result

    async def shutdown(self):
        """Stop the scheduler and forget every target. Later reconciles are no-ops."""
        async with self._lock:
            self.closed = True
            await self.scheduler.shutdown()
            self._scheduled.clear()
