"""Scripted source adapter and helpers shared by tests."""

from __future__ import annotations

import asyncio
from typing import Any

from vodhub.schema.search import ResultItem
from vodhub.schema.site_config import SourceSite
from vodhub.sources.base import FailureKind, SourceAdapter, SourceError


def make_site(key: str, *, disabled: bool = False) -> SourceSite:
    return SourceSite(key=key, name=f"Site {key}", api=f"https://{key}.example.com/api.php/provide/vod", disabled=disabled)


def make_item(
    title: str,
    *,
    year: str = "2023",
    type_name: str = "国产剧",
    video_id: str = "1",
    episodes: int = 1,
    source: str = "",
) -> dict[str, Any]:
    item = {
        "id": video_id,
        "title": title,
        "year": year,
        "type_name": type_name,
        "poster": f"https://img.example.com/{video_id}.jpg",
        "episodes": [f"https://cdn.example.com/{video_id}/{index}.m3u8" for index in range(episodes)],
    }
    if source:
        item["source"] = source
    return item


class FakeAdapter(SourceAdapter):
    """Adapter returning canned pages per (site key, query)."""

    def __init__(
        self,
        pages: dict[tuple[str, str], list[list[dict[str, Any]]]] | None = None,
        *,
        errors: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.errors = errors or {}
        self.delays = delays or {}
        self.details: dict[tuple[str, str], ResultItem | Exception] = {}
        self.search_calls: list[tuple[str, str]] = []
        self.pages_served: list[tuple[str, str, int]] = []
        self.timeouts: list[float | None] = []
        self.detail_calls: list[tuple[str, str]] = []

    async def search(self, site, query, *, paginate=True, timeout=None):
        self.search_calls.append((site.key, query))
        self.timeouts.append(timeout)
        if site.key in self.errors:
            raise self.errors[site.key]
        for index, page in enumerate(self.pages.get((site.key, query), [])):
            delay = self.delays.get(site.key)
            if delay:
                await asyncio.sleep(delay)
            self.pages_served.append((site.key, query, index))
            yield [ResultItem.model_validate({"source": site.key, **entry}) for entry in page]

    async def detail(self, site, video_id, *, fallback_title="", timeout=None):
        self.detail_calls.append((site.key, video_id))
        value = self.details.get((site.key, video_id))
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise SourceError(FailureKind.NO_RESULTS, "not found")
        return value
