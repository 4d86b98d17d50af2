from __future__ import annotations

import pytest

from vodhub.core.config import settings
from vodhub.schema.search import ResultItem
from vodhub.schema.user_media import PlayRecord
from vodhub.storage import UserStore, get_kv_database


@pytest.mark.asyncio
async def test_cron_refreshes_records_in_background(client, adapter, monkeypatch):
    monkeypatch.setattr(settings, "storage_type", "memory")
    monkeypatch.setattr(settings, "owner_username", None)
    store = UserStore(get_kv_database())
    await store.register_user("alice", "pw")
    await store.save_play_record("alice", "alpha+7", PlayRecord(title="狂飙", total_episodes=1))
    adapter.details[("alpha", "7")] = ResultItem(title="狂飙", episodes=["https://cdn.example.com/1.m3u8"] * 3)

    response = await client.get("/api/cron")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Cron job executed successfully"
    assert payload["timestamp"]
    assert (await store.get_play_record("alice", "alpha+7")).total_episodes == 3


@pytest.mark.asyncio
async def test_cron_reports_failure_when_user_listing_breaks(client, adapter, monkeypatch):
    monkeypatch.setattr(settings, "storage_type", "memory")

    async def _broken(self):
        raise RuntimeError("storage offline")

    monkeypatch.setattr(UserStore, "get_all_users", _broken)

    response = await client.get("/api/cron")

    assert response.status_code == 500
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "Cron job failed"
    assert payload["error"] == "storage offline"
    assert payload["timestamp"]


@pytest.mark.asyncio
async def test_cron_with_local_storage_does_nothing(client, adapter, monkeypatch):
    monkeypatch.setattr(settings, "storage_type", "localstorage")

    response = await client.get("/api/cron")

    assert response.json()["success"] is True
    assert adapter.detail_calls == []
