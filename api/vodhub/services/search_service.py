"""Concurrent multi-site search with dedup, filtering, and failure isolation.

Invariants:
- Every site runs in its own task; one site's failure never affects another.
- Within a site, passes run sequentially (canonical, then alternates) and
  share one dedup set, so cross-pass overlap collapses to one entry.
- A site succeeds iff at least one raw (pre-filter) item was produced.
- Buffered output is ordered by site order, then per-site insertion order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from time import monotonic
from typing import Awaitable, Callable, Iterable, Sequence, TypeAlias

from vodhub.core.config import settings
from vodhub.schema.search import (
    AggregateEvent,
    FailedSource,
    FailureSummaryEvent,
    ResultItem,
    SitePageEvent,
)
from vodhub.schema.site_config import SourceSite
from vodhub.services.canonicalizer import SearchQuery, normalize_variants
from vodhub.services.streaming import CancellationToken, NdjsonChannel
from vodhub.sources.base import FAILURE_REASONS, FailureKind, SourceAdapter, SourceError
from vodhub.sources.observability import source_monitor

DedupeKey: TypeAlias = tuple[str, str]
PageCallback: TypeAlias = Callable[[SourceSite, list[ResultItem]], Awaitable[bool]]

# Category labels containing any of these substrings are dropped unless filtering is off.
DEFAULT_CONTENT_BLOCKLIST: tuple[str, ...] = (
    "伦理片",
    "福利",
    "里番动漫",
    "门事件",
    "萝莉少女",
    "制服诱惑",
    "国产传媒",
    "cosplay",
    "黑丝诱惑",
    "无码",
    "日本无码",
    "有码",
    "日本有码",
    "SWAG",
    "网红主播",
    "色情片",
    "同性片",
    "福利视频",
    "福利片",
)

logger = logging.getLogger("vodhub.services.search")


def build_dedupe_key(item: ResultItem) -> DedupeKey:
    """Identity of a logical item: variant-normalized title plus year."""
    return (normalize_variants(item.title), item.year)


def content_blocklist() -> tuple[str, ...]:
    return DEFAULT_CONTENT_BLOCKLIST + tuple(settings.content_blocklist_extra)


def is_blocked(item: ResultItem, blocklist: Iterable[str]) -> bool:
    label = item.type_name
    return any(word in label for word in blocklist)


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an adapter exception onto a failure kind."""
    if isinstance(exc, SourceError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return FailureKind.TIMEOUT
    message = str(exc).lower()
    if "timeout" in message or "timed out" in message or "超时" in message:
        return FailureKind.TIMEOUT
    if "network" in message or "网络" in message:
        return FailureKind.NETWORK
    return FailureKind.UNKNOWN


@dataclass(slots=True)
class SiteOutcome:
    """Result of one site's passes: items on success, a failure otherwise."""
    site: SourceSite
    items: list[ResultItem] = field(default_factory=list)
    failure: FailedSource | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass(slots=True)
class BufferedSearchOutcome:
    results: list[ResultItem] = field(default_factory=list)
    failed_sources: list[FailedSource] = field(default_factory=list)


def _failed(site: SourceSite, kind: FailureKind) -> FailedSource:
    return FailedSource(name=site.name, key=site.key, error=FAILURE_REASONS[kind], kind=kind.value)


class AsyncPages:
    """Pull pages one at a time, each under the per-call timeout.

    Iteration ends early once the cancellation token fires.
    """

    def __init__(self, pages, timeout: float | None, token: CancellationToken | None) -> None:
        self._pages = pages.__aiter__()
        self._timeout = timeout
        self._token = token

    def __aiter__(self) -> "AsyncPages":
        return self

    async def __anext__(self) -> list[ResultItem]:
        if self._token is not None and self._token.cancelled:
            raise StopAsyncIteration
        if self._timeout:
            return await asyncio.wait_for(self._pages.__anext__(), self._timeout)
        return await self._pages.__anext__()

    async def aclose(self) -> None:
        closer = getattr(self._pages, "aclose", None)
        if closer is not None:
            await closer()


async def search_site(
    adapter: SourceAdapter,
    site: SourceSite,
    query: SearchQuery,
    *,
    timeout: float | None = None,
    filter_content: bool = True,
    blocklist: Sequence[str] | None = None,
    token: CancellationToken | None = None,
    on_page: PageCallback | None = None,
) -> SiteOutcome:
    """Run every query pass against one site, never raising adapter errors.

    `on_page` receives each page's newly-seen items; returning False stops
    the remaining passes for this site.
    """
    words = tuple(blocklist) if blocklist is not None else content_blocklist()
    seen: set[DedupeKey] = set()
    items: list[ResultItem] = []
    has_any = False
    started = monotonic()
    try:
        for text in query.passes:
            pages = AsyncPages(adapter.search(site, text, paginate=True, timeout=timeout), timeout, token)
            try:
                async for page in pages:
                    if page:
                        has_any = True
                    unique: list[ResultItem] = []
                    for item in page:
                        if filter_content and is_blocked(item, words):
                            continue
                        key = build_dedupe_key(item)
                        if key in seen:
                            continue
                        seen.add(key)
                        unique.append(item)
                    items.extend(unique)
                    if unique and on_page is not None and not await on_page(site, unique):
                        return SiteOutcome(site=site, items=items)
            finally:
                await pages.aclose()
        if token is not None and token.cancelled:
            return SiteOutcome(site=site, items=items)
    except Exception as exc:  # noqa: BLE001
        kind = classify_failure(exc)
        await source_monitor.record_failure(
            site.key,
            "search",
            kind=kind.value,
            error=str(exc) or kind.value,
            latency_ms=(monotonic() - started) * 1000,
            context={"query": query.canonical},
        )
        return SiteOutcome(site=site, failure=_failed(site, kind))

    latency_ms = (monotonic() - started) * 1000
    if not has_any:
        await source_monitor.record_failure(
            site.key,
            "search",
            kind=FailureKind.NO_RESULTS.value,
            error="no results",
            latency_ms=latency_ms,
            context={"query": query.canonical},
        )
        return SiteOutcome(site=site, failure=_failed(site, FailureKind.NO_RESULTS))
    await source_monitor.record_success(
        site.key,
        "search",
        latency_ms=latency_ms,
        context={"query": query.canonical, "returned": len(items)},
    )
    return SiteOutcome(site=site, items=items)


async def search_buffered(
    adapter: SourceAdapter,
    sites: Sequence[SourceSite],
    query: SearchQuery,
    *,
    timeout: float | None = None,
    filter_content: bool = True,
) -> BufferedSearchOutcome:
    """Wait for every site and merge results in site order."""
    blocklist = content_blocklist()
    outcomes = await asyncio.gather(
        *(
            search_site(adapter, site, query, timeout=timeout, filter_content=filter_content, blocklist=blocklist)
            for site in sites
        )
    )
    merged = BufferedSearchOutcome()
    for outcome in outcomes:
        if outcome.failure is not None:
            merged.failed_sources.append(outcome.failure)
        else:
            merged.results.extend(outcome.items)
    logger.info(
        "Buffered search for %r: %d results from %d sites, %d failed",
        query.canonical,
        len(merged.results),
        len(sites),
        len(merged.failed_sources),
    )
    return merged


async def search_incremental(
    adapter: SourceAdapter,
    sites: Sequence[SourceSite],
    query: SearchQuery,
    channel: NdjsonChannel,
    *,
    timeout: float | None = None,
    filter_content: bool = True,
) -> None:
    """Stream each site's new items as they arrive, then the closing events.

    The channel is always closed when this returns.
    """
    blocklist = content_blocklist()
    aggregated: list[ResultItem] = []
    failed_sources: list[FailedSource] = []

    async def _emit(site: SourceSite, unique: list[ResultItem]) -> bool:
        aggregated.extend(unique)
        return await channel.write(SitePageEvent(site=site.key, page_results=unique))

    async def _run(site: SourceSite) -> None:
        outcome = await search_site(
            adapter,
            site,
            query,
            timeout=timeout,
            filter_content=filter_content,
            blocklist=blocklist,
            token=channel.token,
            on_page=_emit,
        )
        if outcome.failure is not None:
            failed_sources.append(outcome.failure)

    try:
        await asyncio.gather(*(_run(site) for site in sites), return_exceptions=True)
        if failed_sources:
            await channel.write(FailureSummaryEvent(failed_sources=failed_sources))
        await channel.write(AggregateEvent(aggregated_results=aggregated))
        logger.info(
            "Streamed search for %r: %d results, %d failed sites%s",
            query.canonical,
            len(aggregated),
            len(failed_sources),
            " (client gone)" if channel.stopped else "",
        )
    finally:
        channel.close()
