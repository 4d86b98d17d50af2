"""FastAPI application entrypoint and health reporting utilities."""

import logging
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vodhub.api.router import api_router
from vodhub.core.config import settings
from vodhub.jobs.schedule_registry import ensure_schedules
from vodhub.sources.observability import source_monitor

LOG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"

logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def _register_schedules() -> None:
    """Register scheduled jobs on startup."""
    ensure_schedules()


def _summarize_sources(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Condense source monitor state into health-friendly telemetry.

    A source is degraded when its most recent search failed for any reason
    other than an empty result set.
    """
    issues: list[dict[str, Any]] = []
    sources: dict[str, Any] = {}
    for source, operations in snapshot.items():
        search = operations.get("search", {})
        kind = search.get("last_failure_kind")
        state = "ok"
        if kind and kind != "no_results":
            state = "degraded"
            issues.append({"source": source, "reason": kind, "error": search.get("last_error")})
        sources[source] = {"state": state, "operations": operations}
    return {"sources": sources, "issues": issues}


@app.get("/health", tags=["internal"])
@app.get(f"{settings.api_prefix}/health", tags=["internal"])
async def health() -> dict[str, Any]:
    """Return health status with per-source search telemetry."""
    telemetry = _summarize_sources(await source_monitor.snapshot())
    status = "ok" if not telemetry["issues"] else "degraded"
    return {"status": status, "sources": telemetry}
