from __future__ import annotations

import asyncio
import socket
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TcpProbeResult:
    host: str
    port: int
    reachable: bool
    reason: str  # "ok" | "timeout" | "dns_error" | "connect_error"
    elapsed_ms: float
    observed_at: datetime
    error: str | None = None


async def _connect(host: str, port: int) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    return await asyncio.open_connection(host=host, port=port)


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


async def check_tcp(host: str, port: int, *, timeout_seconds: float) -> TcpProbeResult:
    """
    Open (and immediately close) one TCP connection to host:port.

    Name resolution is part of the bounded attempt. On timeout the pending
    connect is cancelled by ``asyncio.wait_for`` so no half-open socket survives.
    Never raises for network errors.
    """
    started = time.perf_counter()
    observed_at = datetime.now(timezone.utc)
    reason = "ok"
    error: str | None = None

    try:
        _reader, writer = await asyncio.wait_for(_connect(host, port), timeout=max(0.001, float(timeout_seconds)))
    except asyncio.TimeoutError:
        reason = "timeout"
        error = f"no connection within {timeout_seconds:.3f}s"
    except (socket.gaierror, UnicodeError) as e:
        # UnicodeError: the name fails IDNA encoding before any lookup
        reason = "dns_error"
        error = f"{type(e).__name__}: {e}"
    except OSError as e:
        reason = "connect_error"
        error = f"{type(e).__name__}: {e}"
    else:
        await _close(writer)

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    result = TcpProbeResult(
        host=host,
        port=port,
        reachable=reason == "ok",
        reason=reason,
        elapsed_ms=round(elapsed_ms, 3),
        observed_at=observed_at,
        error=error,
    )
    logger.debug(
        "TCP probe finished",
        host=host,
        port=port,
        reachable=result.reachable,
        reason=reason,
        elapsed_ms=result.elapsed_ms,
        error=error,
    )
    return result


async def probe(host: str, port: int, timeout_seconds: float) -> bool:
    """Return True when a TCP connection to host:port succeeds within the timeout."""
    result = await check_tcp(host, port, timeout_seconds=timeout_seconds)
    return result.reachable
