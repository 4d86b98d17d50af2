"""Tests for search response mode selection, shapes, and cache headers."""

from __future__ import annotations

import asyncio
import json

import pytest
from starlette.requests import Request

from vodhub.api.routes import search as search_route
from vodhub.schema.site_config import SiteConfig
from vodhub.services import canonicalizer
from vodhub.sources.base import FailureKind, SourceError
from vodhub.tests.utils import make_item, make_site

BROWSER_HEADERS = {"sec-fetch-mode": "cors", "sec-fetch-site": "same-origin"}


def _assert_no_store(response) -> None:
    assert response.headers["cache-control"] == "no-store, no-cache, must-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"


def _ndjson(response) -> list[dict]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


@pytest.mark.asyncio
async def test_blank_query_short_circuits(client, adapter):
    response = await client.get("/api/search", params={"q": "   "}, headers=BROWSER_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"results": []}
    assert adapter.search_calls == []
    _assert_no_store(response)


@pytest.mark.asyncio
async def test_missing_query_returns_empty_results(client, adapter):
    response = await client.get("/api/search")

    assert response.json() == {"results": []}
    assert adapter.search_calls == []


@pytest.mark.asyncio
async def test_non_browser_defaults_to_buffered_results_key(client, adapter):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙", video_id="1")]]

    response = await client.get("/api/search", params={"q": "狂飙"})

    assert response.status_code == 200
    payload = response.json()
    assert set(payload) == {"results", "failedSources"}
    assert [item["id"] for item in payload["results"]] == ["1"]
    assert payload["failedSources"] == [
        {"name": "Site beta", "key": "beta", "error": "no results", "kind": "no_results"}
    ]
    _assert_no_store(response)


@pytest.mark.asyncio
async def test_browser_forced_buffered_uses_aggregated_key(client, adapter):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙")]]

    response = await client.get("/api/search", params={"q": "狂飙", "stream": "0"}, headers=BROWSER_HEADERS)

    payload = response.json()
    assert set(payload) == {"aggregatedResults", "failedSources"}
    assert payload["aggregatedResults"][0]["title"] == "狂飙"


@pytest.mark.asyncio
async def test_browser_defaults_to_stream(client, adapter):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙", video_id="1")]]
    adapter.pages[("beta", "狂飙")] = [[make_item("狂飙", video_id="2")]]

    response = await client.get("/api/search", params={"q": "狂飙"}, headers=BROWSER_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    _assert_no_store(response)
    events = _ndjson(response)
    assert {event["site"] for event in events[:-1]} == {"alpha", "beta"}
    assert sorted(item["id"] for item in events[-1]["aggregatedResults"]) == ["1", "2"]


@pytest.mark.asyncio
async def test_explicit_stream_flag_overrides_client_class(client, adapter):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙")]]

    response = await client.get("/api/search", params={"q": "狂飙", "stream": "1"})

    events = _ndjson(response)
    assert events[-2] == {"failedSources": [{"name": "Site beta", "key": "beta", "error": "no results", "kind": "no_results"}]}
    assert len(events[-1]["aggregatedResults"]) == 1


@pytest.mark.asyncio
async def test_sources_allow_list_and_timeout_are_applied(client, adapter):
    adapter.pages[("beta", "狂飙")] = [[make_item("狂飙")]]

    response = await client.get("/api/search", params={"q": "狂飙", "sources": "beta,unknown", "timeout": "8"})

    payload = response.json()
    assert payload["failedSources"] == []
    assert {call[0] for call in adapter.search_calls} == {"beta"}
    assert set(adapter.timeouts) == {8.0}


@pytest.mark.asyncio
async def test_invalid_timeout_is_ignored(client, adapter):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙")]]

    await client.get("/api/search", params={"q": "狂飙", "timeout": "soon"})

    assert set(adapter.timeouts) == {None}


@pytest.mark.asyncio
async def test_disabled_sites_are_skipped(client, adapter, site_config: SiteConfig):
    site_config.sources.append(make_site("gamma", disabled=True))
    adapter.pages[("gamma", "狂飙")] = [[make_item("狂飙")]]

    response = await client.get("/api/search", params={"q": "狂飙"})

    assert "gamma" not in {call[0] for call in adapter.search_calls}
    assert {failure["key"] for failure in response.json()["failedSources"]} == {"alpha", "beta"}


@pytest.mark.asyncio
async def test_traditional_query_reaches_variant_indexed_site(client, adapter, monkeypatch):
    async def _convert(raw: str, **_: object) -> str:
        return raw.replace("飆", "飙")

    monkeypatch.setattr(canonicalizer, "to_canonical_simplified", _convert)
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙", video_id="a")]]
    adapter.pages[("alpha", "狂飚")] = [[make_item("狂飚", video_id="a-dup")]]
    adapter.pages[("beta", "狂飚")] = [[make_item("狂飚", video_id="b")]]

    response = await client.get("/api/search", params={"q": "狂飆", "stream": "0"})

    payload = response.json()
    assert [item["id"] for item in payload["results"]] == ["a", "b"]
    assert payload["failedSources"] == []
    assert ("alpha", "狂飙") in adapter.search_calls
    assert ("beta", "狂飚") in adapter.search_calls


@pytest.mark.asyncio
async def test_content_filter_respects_site_config(client, adapter, site_config: SiteConfig):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙", type_name="伦理片")]]

    filtered = await client.get("/api/search", params={"q": "狂飙", "sources": "alpha"})
    assert filtered.json()["results"] == []

    site_config.disable_content_filter = True
    unfiltered = await client.get("/api/search", params={"q": "狂飙", "sources": "alpha"})
    assert len(unfiltered.json()["results"]) == 1


@pytest.mark.asyncio
async def test_health_reports_degraded_source(client, adapter):
    adapter.errors["alpha"] = SourceError(FailureKind.TIMEOUT)
    adapter.pages[("beta", "狂飙")] = [[make_item("狂飙")]]
    await client.get("/api/search", params={"q": "狂飙"})

    response = await client.get("/api/health")
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["sources"]["issues"][0]["source"] == "alpha"
    assert payload["sources"]["sources"]["beta"]["state"] == "ok"


@pytest.mark.asyncio
@pytest.mark.parametrize("sources", [",", " , "])
async def test_empty_allow_list_selects_no_sites(client, adapter, sources):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙")]]

    response = await client.get("/api/search", params={"q": "狂飙", "sources": sources})

    assert response.json() == {"results": [], "failedSources": []}
    assert adapter.search_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("value, expected", [("5s", 5.0), ("5.5", 5.0), (" 7", 7.0), ("0", None), ("-3", None)])
async def test_timeout_reads_leading_integer(client, adapter, value, expected):
    adapter.pages[("alpha", "狂飙")] = [[make_item("狂飙")]]

    await client.get("/api/search", params={"q": "狂飙", "sources": "alpha", "timeout": value})

    assert set(adapter.timeouts) == {expected}


@pytest.mark.asyncio
async def test_client_disconnect_stops_site_pagination(adapter, site_config: SiteConfig):
    adapter.pages[("alpha", "狂飙")] = [[make_item(f"P{index}", video_id=str(index))] for index in range(20)]
    adapter.delays["alpha"] = 0.02
    request = Request({"type": "http", "method": "GET", "path": "/api/search", "headers": [], "query_string": b""})

    response = await search_route.search(
        request, q="狂飙", stream="1", timeout=None, sources="alpha", adapter=adapter, site_config=site_config
    )
    body = response.body_iterator
    first = json.loads(await body.__anext__())
    await body.aclose()

    await asyncio.sleep(0.1)
    served = list(adapter.pages_served)
    await asyncio.sleep(0.2)

    assert first["site"] == "alpha"
    assert adapter.pages_served == served
    assert len(served) < 20
    assert not search_route._background_searches
