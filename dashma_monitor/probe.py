"""Single liveness checks: ICMP ping through the system binary, or a TCP connect."""

from __future__ import annotations

import asyncio
import math
import re
import sys
import time
from typing import Awaitable, Callable, Optional

import structlog

from .models import MonitorTarget, ProbeResult


logger = structlog.get_logger(__name__)

ProbeFunc = Callable[[str, Optional[int], int], Awaitable[ProbeResult]]

DEFAULT_TIMEOUT_MS = 5000

# Extra wall-clock allowance for the ping process to start and exit. An ICMP
# attempt takes at most timeout_ms plus this before it is killed.
_PING_PROCESS_GRACE_SECONDS = 0.5
_PING_TIME_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


def method_for(port: int | None) -> str:
    return "TCP" if port else "ICMP"


def _ping_command(host: str, timeout_ms: int, platform: str = sys.platform) -> list[str]:
    # -W is milliseconds on macOS and whole seconds on Linux.
    if platform.startswith("win"):
        return ["ping", "-n", "1", "-w", str(int(timeout_ms)), host]
    if platform == "darwin":
        return ["ping", "-c", "1", "-W", str(int(timeout_ms)), host]
    return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000))), host]


def parse_ping_latency(output: str) -> int | None:
    """Round-trip time in whole milliseconds from ping output, if a reply was seen."""
    for line in (output or "").splitlines():
        m = _PING_TIME_RE.search(line)
        if m:
            try:
                return int(round(float(m.group(1))))
            except ValueError:
                continue
    return None


async def icmp_ping(host: str, timeout_ms: int) -> ProbeResult:
    cmd = _ping_command(host, timeout_ms)
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return ProbeResult(alive=False, error="ping binary not found")
    except OSError as e:
        return ProbeResult(alive=False, error=f"ping failed: {e}")

    try:
        stdout, _ = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout_ms / 1000 + _PING_PROCESS_GRACE_SECONDS,
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return ProbeResult(alive=False, error="timeout")
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
        raise

    output = stdout.decode(errors="replace")
    latency = parse_ping_latency(output)
    if process.returncode != 0 or latency is None:
        return ProbeResult(alive=False, error="no reply" if process.returncode else "unparseable ping output")
    return ProbeResult(alive=True, latency_ms=latency)


async def tcp_check(host: str, port: int, timeout_ms: int) -> ProbeResult:
    started = time.perf_counter()
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError:
        return ProbeResult(alive=False, error="timeout")
    except (OSError, ValueError) as e:
        return ProbeResult(alive=False, error=str(e) or type(e).__name__)

    latency = int(round((time.perf_counter() - started) * 1000))
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return ProbeResult(alive=True, latency_ms=latency)


async def probe(host: str, port: int | None, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ProbeResult:
    """Check one host once. Never raises for network failures."""
    try:
        if port:
            return await tcp_check(host, int(port), timeout_ms)
        return await icmp_ping(host, timeout_ms)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("Probe raised unexpectedly", host=host, port=port, error=str(e))
        return ProbeResult(alive=False, error=f"{type(e).__name__}: {e}")


async def probe_with_retries(probe_func: ProbeFunc, target: MonitorTarget) -> ProbeResult:
    """Probe up to ``retries + 1`` times, stopping at the first alive result.

    The returned result is the last attempt's: the successful one if any
    attempt succeeded, otherwise the final failure.
    """
    result = ProbeResult(alive=False, error="not checked")
    for attempt in range(max(0, target.retries) + 1):
        result = await probe_func(target.host, target.port, target.timeout_ms)
        if result.alive:
            break
        logger.debug("Probe attempt failed",
                     host_id=target.id,
                     attempt=attempt + 1,
                     error=result.error)
    return result
