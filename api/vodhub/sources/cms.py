from __future__ import annotations

import html
import re
from typing import Any, AsyncIterator

import httpx

from vodhub.core.config import settings
from vodhub.schema.search import ResultItem
from vodhub.schema.site_config import SourceSite
from vodhub.sources.base import FailureKind, SourceAdapter, SourceError
from vodhub.sources.http import fetch_json

M3U8_PATTERN = re.compile(r"\$(https?://[^\"'\s]+?\.m3u8)")
YEAR_PATTERN = re.compile(r"\d{4}")
TAG_PATTERN = re.compile(r"<[^>]+>")
DETAIL_ATTEMPTS = 2


def parse_episodes(play_url: str | None) -> list[str]:
    """Pick the play group with the most m3u8 links, de-duplicated in order."""
    best: list[str] = []
    for group in (play_url or "").split("$$$"):
        links = M3U8_PATTERN.findall(group)
        if len(links) > len(best):
            best = links
    return list(dict.fromkeys(link.split("(")[0] for link in best))


def parse_year(value: Any) -> str:
    match = YEAR_PATTERN.search(str(value or ""))
    return match.group(0) if match else ""


def clean_description(value: str | None) -> str:
    if not value:
        return ""
    text = TAG_PATTERN.sub("", value)
    return " ".join(html.unescape(text).split())


def to_result_item(payload: dict[str, Any], site: SourceSite) -> ResultItem:
    """Validate one CMS `list` entry into a ResultItem."""
    return ResultItem.model_validate(
        {
            "id": payload.get("vod_id"),
            "title": (payload.get("vod_name") or "").strip(),
            "poster": payload.get("vod_pic"),
            "episodes": parse_episodes(payload.get("vod_play_url")),
            "source": site.key,
            "source_name": site.name,
            "year": parse_year(payload.get("vod_year")),
            "desc": clean_description(payload.get("vod_content")),
            "type_name": payload.get("type_name"),
            "douban_id": payload.get("vod_douban_id"),
        }
    )


class CmsSourceAdapter(SourceAdapter):
    """Adapter for Apple CMS v10 style `?ac=videolist` JSON endpoints."""

    source_kind = "cms"

    def __init__(
        self,
        *,
        max_pages: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.max_pages = max_pages or settings.source_max_pages
        self._transport = transport

    async def _fetch_page(
        self,
        site: SourceSite,
        params: dict[str, Any],
        timeout: float | None,
        *,
        attempts: int = 1,
    ) -> dict[str, Any]:
        payload = await fetch_json(
            site.api,
            params={"ac": "videolist", **params},
            timeout=timeout or settings.source_request_timeout_seconds,
            attempts=attempts,
            transport=self._transport,
        )
        if not isinstance(payload, dict):
            raise SourceError(FailureKind.UNKNOWN, f"unexpected payload from {site.key}")
        return payload

    async def search(
        self,
        site: SourceSite,
        query: str,
        *,
        paginate: bool = True,
        timeout: float | None = None,
    ) -> AsyncIterator[list[ResultItem]]:
        first = await self._fetch_page(site, {"wd": query}, timeout)
        yield [to_result_item(entry, site) for entry in first.get("list") or [] if isinstance(entry, dict)]
        if not paginate:
            return
        try:
            page_count = int(first.get("pagecount") or 1)
        except (TypeError, ValueError):
            page_count = 1
        for page in range(2, min(page_count, self.max_pages) + 1):
            payload = await self._fetch_page(site, {"wd": query, "pg": page}, timeout)
            items = [to_result_item(entry, site) for entry in payload.get("list") or [] if isinstance(entry, dict)]
            if not items:
                return
            yield items

    async def detail(
        self,
        site: SourceSite,
        video_id: str,
        *,
        fallback_title: str = "",
        timeout: float | None = None,
    ) -> ResultItem:
        payload = await self._fetch_page(site, {"ids": video_id}, timeout, attempts=DETAIL_ATTEMPTS)
        for entry in payload.get("list") or []:
            if isinstance(entry, dict):
                return to_result_item(entry, site)
        if fallback_title:
            async for page in self.search(site, fallback_title, timeout=timeout):
                for item in page:
                    if item.id == video_id:
                        return item
        raise SourceError(FailureKind.NO_RESULTS, f"{site.key}+{video_id} not found")
