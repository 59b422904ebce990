#!/usr/bin/env python3
"""Command-line access to the host monitor.

Usage:
    python -m dashma_monitor.cli targets                      # Resolved targets as JSON
    python -m dashma_monitor.cli targets --config-document data/config.json
    python -m dashma_monitor.cli test 192.168.1.10            # ICMP ping once
    python -m dashma_monitor.cli test nas.local --port 5000   # TCP connect once
    python -m dashma_monitor.cli serve --port 3000            # Run the HTTP API
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from .config import MonitorDefaults, load_config
from .config_store import JsonConfigStore
from .exceptions import ConfigError
from .log_setup import configure_logging
from .models import HostTestResult
from .probe import method_for, probe
from .resolver import resolve


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dashma host monitor")
    parser.add_argument("--config", default=None, help="Path to the monitor YAML config")
    parser.add_argument("--log-level", default=None, help="Logging level (INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    targets = sub.add_parser("targets", help="Print the hosts that would be monitored")
    targets.add_argument("--config-document", default=None, help="Path to the dashboard JSON document")

    test = sub.add_parser("test", help="Probe one host once")
    test.add_argument("host")
    test.add_argument("--port", type=int, default=None, help="TCP port; omit for ICMP ping")
    test.add_argument("--timeout-ms", type=int, default=None, help="Probe timeout in milliseconds")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    return parser


def _cmd_targets(config, document_path: str | None) -> int:
    store = JsonConfigStore(document_path or config.config_document_path)
    targets = resolve(store.load(), MonitorDefaults.from_config(config))
    print(json.dumps([t.to_dict() for t in sorted(targets, key=lambda t: t.id)], indent=2))
    return 0


def _cmd_test(config, host: str, port: int | None, timeout_ms: int | None) -> int:
    result = asyncio.run(probe(host, port, timeout_ms or config.test_timeout_ms))
    test = HostTestResult.from_probe(host, port, result, method_for(port))
    print(json.dumps(test.to_dict(), indent=2))
    return 0 if result.alive else 1


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    configure_logging(args.log_level or config.log_level)

    if args.command == "targets":
        return _cmd_targets(config, args.config_document)
    if args.command == "test":
        return _cmd_test(config, args.host, args.port, args.timeout_ms)
    if args.command == "serve":
        from .api.server import run
        run(config, host=args.host, port=args.port)
        return 0
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
