"""Data types shared by the probe, resolver, cache and scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union


STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


@dataclass(frozen=True)
class LinkOrigin:
    """Target derived from a dashboard link with monitoring enabled."""
    link_id: str
    kind: Literal["link"] = field(default="link", init=False)

    def target_id(self) -> str:
        return f"link-{self.link_id}"


@dataclass(frozen=True)
class WidgetServerOrigin:
    """Target derived from one server entry of a server-monitor widget."""
    widget_id: str
    server_id: str
    kind: Literal["widgetServer"] = field(default="widgetServer", init=False)

    def target_id(self) -> str:
        return f"widget-{self.widget_id}-{self.server_id}"


TargetOrigin = Union[LinkOrigin, WidgetServerOrigin]


@dataclass(frozen=True)
class MonitorTarget:
    id: str
    host: str
    port: int | None
    interval_seconds: int
    retries: int
    timeout_ms: int
    origin: TargetOrigin
    name: str | None = None

    def probe_params(self) -> tuple[str, int | None, int, int, int]:
        """Fields that change how or how often the host is probed."""
        return (self.host, self.port, self.interval_seconds, self.retries, self.timeout_ms)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "host": self.host,
            "port": self.port,
            "intervalSeconds": self.interval_seconds,
            "retries": self.retries,
            "timeoutMs": self.timeout_ms,
            "origin": self.origin.kind,
            "name": self.name,
        }
        if isinstance(self.origin, LinkOrigin):
            out["linkId"] = self.origin.link_id
        else:
            out["widgetId"] = self.origin.widget_id
            out["serverId"] = self.origin.server_id
        return out


@dataclass(frozen=True)
class ProbeResult:
    alive: bool
    latency_ms: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class StatusRecord:
    id: str
    host: str
    port: int | None
    status: str
    latency_ms: int | None
    last_checked_at: datetime
    last_status_change_at: datetime
    consecutive_failures: int
    error: str | None = None

    @property
    def online(self) -> bool:
        return self.status == STATUS_ONLINE

    @classmethod
    def next(
        cls,
        previous: StatusRecord | None,
        target: MonitorTarget,
        result: ProbeResult,
        now: datetime | None = None,
    ) -> StatusRecord:
        """Build the record that replaces ``previous`` after ``result``.

        ``last_status_change_at`` moves only when the status flips (or on the
        first record); ``consecutive_failures`` counts offline results since
        the last online one.
        """
        now = now or utc_now()
        status = STATUS_ONLINE if result.alive else STATUS_OFFLINE

        if previous is None or previous.status != status:
            changed_at = now
        else:
            changed_at = previous.last_status_change_at

        if result.alive:
            failures = 0
            # An alive result always carries a latency so online implies latency.
            latency = result.latency_ms if result.latency_ms is not None else 0
            error = None
        else:
            failures = (previous.consecutive_failures if previous is not None else 0) + 1
            latency = None
            error = result.error

        return cls(
            id=target.id,
            host=target.host,
            port=target.port,
            status=status,
            latency_ms=latency,
            last_checked_at=now,
            last_status_change_at=changed_at,
            consecutive_failures=failures,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "host": self.host,
            "port": self.port,
            "status": self.status,
            "latencyMs": self.latency_ms,
            "lastCheckedAt": _iso(self.last_checked_at),
            "lastStatusChangeAt": _iso(self.last_status_change_at),
            "consecutiveFailures": self.consecutive_failures,
            "error": self.error,
        }


@dataclass(frozen=True)
class HostTestResult:
    """Outcome of a manual "test this host" request. Never cached."""
    host: str
    port: int | None
    status: str
    latency_ms: int | None
    error: str | None
    checked_at: datetime
    method: str

    @classmethod
    def from_probe(cls, host: str, port: int | None, result: ProbeResult, method: str) -> HostTestResult:
        return cls(
            host=host,
            port=port,
            status=STATUS_ONLINE if result.alive else STATUS_OFFLINE,
            latency_ms=result.latency_ms if result.alive else None,
            error=result.error,
            checked_at=utc_now(),
            method=method,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "status": self.status,
            "latencyMs": self.latency_ms,
            "error": self.error,
            "checkedAt": _iso(self.checked_at),
            "method": self.method,
        }
