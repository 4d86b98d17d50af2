"""Per-source search telemetry for logs and the health endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, DefaultDict

logger = logging.getLogger("vodhub.sources")


@dataclass
class OperationMetrics:
    """Aggregated counters for a source operation."""
    succeeded: int = 0
    failed: int = 0
    last_latency_ms: float | None = None
    last_error: str | None = None
    last_failure_kind: str | None = None


class SourceMonitor:
    """Track per-site outcomes without influencing scheduling."""

    def __init__(self) -> None:
        self._metrics: DefaultDict[str, DefaultDict[str, OperationMetrics]] = defaultdict(
            lambda: defaultdict(OperationMetrics)
        )
        self._lock = asyncio.Lock()

    async def record_success(
        self,
        source: str,
        operation: str,
        *,
        latency_ms: float,
        context: dict[str, Any] | None = None,
    ) -> None:
        async with self._lock:
            metrics = self._metrics[source][operation]
            metrics.succeeded += 1
            metrics.last_latency_ms = latency_ms
            metrics.last_error = None
            metrics.last_failure_kind = None
        payload = {
            "event": "source_success",
            "source": source,
            "operation": operation,
            "latency_ms": round(latency_ms, 2),
            "context": context or {},
        }
        logger.info(json.dumps(payload, ensure_ascii=False))

    async def record_failure(
        self,
        source: str,
        operation: str,
        *,
        kind: str,
        error: str,
        latency_ms: float,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Record a classified failure and emit a structured warning."""
        async with self._lock:
            metrics = self._metrics[source][operation]
            metrics.failed += 1
            metrics.last_latency_ms = latency_ms
            metrics.last_error = error
            metrics.last_failure_kind = kind
        payload = {
            "event": "source_failure",
            "source": source,
            "operation": operation,
            "kind": kind,
            "error": error,
            "latency_ms": round(latency_ms, 2),
            "context": context or {},
        }
        logger.warning(json.dumps(payload, ensure_ascii=False))

    async def snapshot(self) -> dict[str, Any]:
        """Return a snapshot of all tracked source metrics."""
        async with self._lock:
            return {
                source: {
                    name: {
                        "succeeded": metrics.succeeded,
                        "failed": metrics.failed,
                        "last_latency_ms": metrics.last_latency_ms,
                        "last_error": metrics.last_error,
                        "last_failure_kind": metrics.last_failure_kind,
                    }
                    for name, metrics in operations.items()
                }
                for source, operations in self._metrics.items()
            }

    async def reset(self) -> None:
        async with self._lock:
            self._metrics.clear()


source_monitor = SourceMonitor()
