from __future__ import annotations

import asyncio
import logging
import re
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from vodhub.api.deps import get_site_config, get_source_adapter
from vodhub.schema.site_config import SiteConfig
from vodhub.services import canonicalizer, search_service
from vodhub.services.streaming import CancellationToken, NdjsonChannel
from vodhub.sources import SourceAdapter

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}
BROWSER_HEADERS = ("sec-fetch-mode", "sec-fetch-dest", "sec-fetch-site")
STREAM_MEDIA_TYPE = "application/json; charset=utf-8"
LEADING_INT = re.compile(r"\s*([+-]?\d+)")

logger = logging.getLogger("vodhub.api.search")

router = APIRouter()

# Streaming fan-outs outlive their response when the client disconnects.
_background_searches: set[asyncio.Task] = set()


def is_browser_like(request: Request) -> bool:
    return any(request.headers.get(header) for header in BROWSER_HEADERS)


def wants_stream(stream: str | None, browser_like: bool) -> bool:
    """Explicit `stream` wins ("0" forces buffered); otherwise follow the client class."""
    if stream:
        return stream != "0"
    return browser_like


def parse_timeout(value: str | None) -> float | None:
    """Read the leading integer seconds (`"5s"` and `"5.5"` both give 5)."""
    match = LEADING_INT.match(value or "")
    if match is None:
        return None
    seconds = int(match.group(1))
    return float(seconds) if seconds > 0 else None


def parse_sources(value: str | None) -> list[str] | None:
    """None means every enabled site; a present but empty list selects none."""
    if not value:
        return None
    return [key.strip() for key in value.split(",") if key.strip()]


def _buffered_body(outcome: search_service.BufferedSearchOutcome, browser_like: bool) -> dict:
    results = [item.model_dump() for item in outcome.results]
    failed = [failure.model_dump() for failure in outcome.failed_sources]
    if browser_like:
        return {"aggregatedResults": results, "failedSources": failed}
    return {"results": results, "failedSources": failed}


@router.get("")
async def search(
    request: Request,
    q: str = Query(default=""),
    stream: str | None = Query(default=None),
    timeout: str | None = Query(default=None),
    sources: str | None = Query(default=None),
    adapter: SourceAdapter = Depends(get_source_adapter),
    site_config: SiteConfig = Depends(get_site_config),
):
    """Search every enabled site, buffered or as a line-delimited stream."""
    if not q.strip():
        return JSONResponse({"results": []}, headers=NO_STORE_HEADERS)

    browser_like = is_browser_like(request)
    sites = site_config.enabled_sites(parse_sources(sources))
    per_call_timeout = parse_timeout(timeout)
    filter_content = not site_config.disable_content_filter
    query = await canonicalizer.build_search_query(q)

    if not wants_stream(stream, browser_like):
        outcome = await search_service.search_buffered(
            adapter, sites, query, timeout=per_call_timeout, filter_content=filter_content
        )
        return JSONResponse(_buffered_body(outcome, browser_like), headers=NO_STORE_HEADERS)

    token = CancellationToken()
    channel = NdjsonChannel(token)
    task = asyncio.create_task(
        search_service.search_incremental(
            adapter, sites, query, channel, timeout=per_call_timeout, filter_content=filter_content
        )
    )
    _background_searches.add(task)
    task.add_done_callback(_background_searches.discard)

    async def _body() -> AsyncIterator[str]:
        try:
            async for line in channel:
                yield line
        finally:
            if not channel.closed:
                logger.info("Search stream for %r cancelled by client", query.canonical)
                token.cancel()

    return StreamingResponse(_body(), media_type=STREAM_MEDIA_TYPE, headers=NO_STORE_HEADERS)
