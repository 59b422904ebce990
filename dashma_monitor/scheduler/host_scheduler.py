"""Per-host recurring checks using APScheduler."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..models import MonitorTarget, ProbeResult, StatusRecord
from ..probe import ProbeFunc, probe, probe_with_retries
from ..status_cache import StatusCache


logger = structlog.get_logger(__name__)


@dataclass(eq=False)
class _HostEntry:
    """Bookkeeping for one scheduled target. Replaced, never reused, on reschedule."""
    target: MonitorTarget
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    task: Optional[asyncio.Task] = None
    active: bool = True


class HostScheduler:
    """Owns one interval job per monitored host and writes results to the cache.

    A host's checks never overlap: scheduled ticks run with
    ``max_instances=1`` and every check (scheduled or forced) holds the host's
    lock. Once ``cancel`` returns, no further write for that id can happen.
    """

    def __init__(self, cache: StatusCache, probe_func: ProbeFunc = probe):
        self.cache = cache
        self.probe_func = probe_func
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._entries: Dict[str, _HostEntry] = {}
        self.running = False

    async def start(self):
        """Start the underlying scheduler on the running event loop."""
        if self.running:
            logger.warning("Host scheduler already running")
            return

        self.scheduler.start()
        self.running = True
        logger.info("Host scheduler started")

    async def shutdown(self):
        """Cancel every host and stop the underlying scheduler."""
        if not self.running:
            return

        await self.cancel_all()
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Host scheduler stopped")

    async def schedule(self, target: MonitorTarget):
        """Start monitoring ``target``: an immediate check, then one every interval."""
        if target.id in self._entries:
            logger.warning("Host already scheduled, replacing", host_id=target.id)
            await self.cancel(target.id)

        entry = _HostEntry(target=target)
        self._entries[target.id] = entry

        self.scheduler.add_job(
            func=self._run_tick,
            trigger=IntervalTrigger(seconds=target.interval_seconds, timezone=timezone.utc),
            id=target.id,
            args=(entry,),
            name=target.name or target.id,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )

        logger.info("Scheduled host",
                    host_id=target.id,
                    host=target.host,
                    port=target.port,
                    interval_seconds=target.interval_seconds)

    async def cancel(self, host_id: str) -> bool:
        """Stop monitoring ``host_id``. Unknown ids are a no-op."""
        entry = self._entries.pop(host_id, None)
        if entry is None:
            return False

        entry.active = False
        job = self.scheduler.get_job(host_id)
        if job is not None:
            job.remove()

        task = entry.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        logger.info("Cancelled host", host_id=host_id)
        return True

    async def cancel_all(self):
        for host_id in list(self._entries):
            await self.cancel(host_id)

    async def force_check(self, host_id: str) -> Optional[StatusRecord]:
        """Check a scheduled host now, outside its cadence. None for unknown ids."""
        entry = self._entries.get(host_id)
        if entry is None:
            return None
        return await self._check(entry)

    async def test_ad_hoc(self, host: str, port: Optional[int], timeout_ms: int) -> ProbeResult:
        """One attempt against arbitrary parameters. Never touches the cache."""
        return await self.probe_func(host, port, timeout_ms)

    async def _run_tick(self, entry: _HostEntry):
        if not entry.active:
            return

        entry.task = asyncio.current_task()
        try:
            await self._check(entry)
        except asyncio.CancelledError:
            logger.debug("In-flight check cancelled", host_id=entry.target.id)
        except Exception as e:
            logger.error("Host check failed", host_id=entry.target.id, error=str(e))
        finally:
            entry.task = None

    async def _check(self, entry: _HostEntry) -> Optional[StatusRecord]:
        target = entry.target
        async with entry.lock:
            if not entry.active:
                return None

            result = await probe_with_retries(self.probe_func, target)

            # The host may have been cancelled while the probe was running.
            if not entry.active:
                return None

            previous = self.cache.read_one(target.id)
            record = StatusRecord.next(previous, target, result)
            self.cache.write(record)

        if previous is None or previous.status != record.status:
            logger.info("Host status changed",
                        host_id=target.id,
                        status=record.status,
                        latency_ms=record.latency_ms,
                        error=record.error)
        return record

    def is_scheduled(self, host_id: str) -> bool:
        return host_id in self._entries

    def scheduled_ids(self) -> List[str]:
        return list(self._entries)

    @property
    def job_count(self) -> int:
        return len(self.scheduler.get_jobs())

    def get_scheduler_status(self) -> Dict[str, Any]:
        """Get overall scheduler status."""
        next_run = min(
            (job.next_run_time for job in self.scheduler.get_jobs() if job.next_run_time),
            default=None
        )
        return {
            "running": self.running,
            "job_count": len(self._entries),
            "next_run": next_run.isoformat() if next_run else None,
        }
