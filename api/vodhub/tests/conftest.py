"""Shared pytest fixtures for API tests and storage isolation."""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from vodhub.api.deps import get_site_config, get_source_adapter
from vodhub.core.site_config import cached_site_config
from vodhub.main import app
from vodhub.schema.site_config import SiteConfig
from vodhub.services import canonicalizer
from vodhub.sources.observability import source_monitor
from vodhub.storage import kv
from vodhub.tests.utils import FakeAdapter, make_site


@pytest.fixture(autouse=True)
def _isolate_state(monkeypatch: pytest.MonkeyPatch):
    kv._memory_db.clear()
    source_monitor._metrics.clear()
    cached_site_config.cache_clear()

    async def _passthrough(raw: str, **_: object) -> str:
        return raw

    monkeypatch.setattr(canonicalizer, "to_canonical_simplified", _passthrough)
    yield
    kv._memory_db.clear()


@pytest.fixture()
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture()
def site_config() -> SiteConfig:
    return SiteConfig(cache_time=7200, sources=[make_site("alpha"), make_site("beta")])


@pytest_asyncio.fixture()
async def client(adapter: FakeAdapter, site_config: SiteConfig) -> AsyncClient:
    app.dependency_overrides[get_source_adapter] = lambda: adapter
    app.dependency_overrides[get_site_config] = lambda: site_config
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as async_client:
        yield async_client
    app.dependency_overrides.pop(get_source_adapter, None)
    app.dependency_overrides.pop(get_site_config, None)
