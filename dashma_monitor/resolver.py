"""Derive the set of hosts to monitor from a dashboard configuration snapshot."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Protocol
from urllib.parse import urlsplit

import structlog

from .config import MonitorDefaults
from .models import LinkOrigin, MonitorTarget, WidgetServerOrigin


logger = structlog.get_logger(__name__)

SERVER_MONITOR_WIDGET = "server-monitor"


def _as_port(raw: Any) -> int | None:
    # Falsy ports (missing, 0, "") mean "use ICMP".
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        port = int(raw)
    except (TypeError, ValueError):
        return None
    return port if 0 < port <= 65535 else None


def _as_interval(raw: Any, default: int) -> int:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _url_hostname(url: Any) -> str | None:
    s = str(url or "").strip()
    if not s:
        return None
    try:
        host = urlsplit(s).hostname
    except ValueError:
        return None
    return host or None


class TargetSource(Protocol):
    """One kind of configuration entry that can yield monitor targets."""

    def iter_targets(self, snapshot: dict[str, Any], defaults: MonitorDefaults) -> Iterator[MonitorTarget]:
        ...


class LinkSource:
    """Links whose ``monitoring.enabled`` flag is set."""

    def iter_targets(self, snapshot: dict[str, Any], defaults: MonitorDefaults) -> Iterator[MonitorTarget]:
        links = snapshot.get("links")
        if not isinstance(links, list):
            return

        for link in links:
            if not isinstance(link, dict):
                continue
            monitoring = link.get("monitoring")
            if not isinstance(monitoring, dict) or not monitoring.get("enabled"):
                continue

            link_id = link.get("id")
            if link_id is None or str(link_id) == "":
                logger.warning("Skipping monitored link without id", url=link.get("url"))
                continue

            host = str(monitoring.get("host") or "").strip() or _url_hostname(link.get("url"))
            if not host:
                logger.warning("Skipping monitored link without usable host",
                               link_id=link_id,
                               url=link.get("url"))
                continue

            origin = LinkOrigin(link_id=str(link_id))
            yield MonitorTarget(
                id=origin.target_id(),
                host=host,
                port=_as_port(monitoring.get("port")),
                interval_seconds=_as_interval(monitoring.get("interval"), defaults.interval_seconds),
                retries=defaults.retries,
                timeout_ms=defaults.timeout_ms,
                origin=origin,
                name=link.get("name") or link.get("title"),
            )


class WidgetServerSource:
    """Server entries of enabled server-monitor widgets."""

    def iter_targets(self, snapshot: dict[str, Any], defaults: MonitorDefaults) -> Iterator[MonitorTarget]:
        widgets = snapshot.get("widgets")
        if not isinstance(widgets, list):
            return

        for widget in widgets:
            if not isinstance(widget, dict):
                continue
            if widget.get("type") != SERVER_MONITOR_WIDGET or not widget.get("enabled"):
                continue
            widget_config = widget.get("config")
            servers = widget_config.get("servers") if isinstance(widget_config, dict) else None
            if not isinstance(servers, list):
                continue

            widget_id = widget.get("id")
            for server in servers:
                if not isinstance(server, dict):
                    continue
                host = str(server.get("host") or "").strip()
                server_id = server.get("id")
                if not host or server_id is None or str(server_id) == "":
                    logger.warning("Skipping widget server without host or id",
                                   widget_id=widget_id,
                                   server_id=server_id)
                    continue

                origin = WidgetServerOrigin(widget_id=str(widget_id), server_id=str(server_id))
                yield MonitorTarget(
                    id=origin.target_id(),
                    host=host,
                    port=_as_port(server.get("port")),
                    interval_seconds=_as_interval(server.get("interval"), defaults.interval_seconds),
                    retries=defaults.retries,
                    timeout_ms=defaults.timeout_ms,
                    origin=origin,
                    name=server.get("name"),
                )


DEFAULT_SOURCES: tuple[TargetSource, ...] = (LinkSource(), WidgetServerSource())


def resolve_defaults(snapshot: Any, base: MonitorDefaults | None = None) -> MonitorDefaults:
    """Global probe defaults, overlaid with the document's ``settings.monitoringSettings``."""
    base = base or MonitorDefaults()
    if not isinstance(snapshot, dict):
        return base
    settings = snapshot.get("settings")
    if not isinstance(settings, dict):
        return base
    return base.overlay(settings.get("monitoringSettings"))


def dedupe_targets(targets: Iterable[MonitorTarget]) -> list[MonitorTarget]:
    """Collapse duplicate ids, keeping the last target seen for each id."""
    by_id: dict[str, MonitorTarget] = {}
    for target in targets:
        if target.id in by_id:
            logger.warning("Duplicate monitor target id, keeping the last one", host_id=target.id)
        by_id[target.id] = target
    return list(by_id.values())


def resolve(
    snapshot: Any,
    defaults: MonitorDefaults | None = None,
    sources: Iterable[TargetSource] = DEFAULT_SOURCES,
) -> list[MonitorTarget]:
    """Return every host to monitor in ``snapshot``, unique by id.

    Malformed entries are skipped so one bad link or widget never hides the
    rest of the configuration.
    """
    if not isinstance(snapshot, dict):
        logger.error("Configuration snapshot is not a mapping", snapshot_type=type(snapshot).__name__)
        return []

    effective = resolve_defaults(snapshot, defaults)
    found: list[MonitorTarget] = []
    for source in sources:
        found.extend(source.iter_targets(snapshot, effective))
    return dedupe_targets(found)
