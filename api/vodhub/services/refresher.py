"""Reconcile stored play history and favorites with live source details.

Invariants:
- No-op when user records are not kept server-side.
- The detail cache lives for one run and only memoizes successful lookups;
  failed lookups are retried by later entries with the same key.
- Errors are contained per user, per record-type pass, and per record.
- A rewrite touches title, cover, year and total_episodes only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vodhub.core.config import settings
from vodhub.schema.search import ResultItem
from vodhub.schema.site_config import SiteConfig
from vodhub.schema.user_media import Favorite, PlayRecord
from vodhub.sources.base import SourceAdapter
from vodhub.storage.user_store import UserStore

logger = logging.getLogger("vodhub.services.refresher")


@dataclass(slots=True)
class RefreshReport:
    users: int = 0
    checked: int = 0
    updated: int = 0
    failed: int = 0
    lookups: int = 0


class MetadataRefresher:
    """One refresher run; create a new instance per run."""

    def __init__(
        self,
        store: UserStore,
        adapter: SourceAdapter,
        site_config: SiteConfig,
        *,
        timeout: float | None = None,
    ) -> None:
        self.store = store
        self.adapter = adapter
        self.site_config = site_config
        self.timeout = timeout or settings.refresh_detail_timeout_seconds
        self.report = RefreshReport()
        self._details: dict[str, ResultItem] = {}

    @property
    def enabled(self) -> bool:
        return settings.storage_type != "localstorage"

    async def prepare(self) -> list[str]:
        """List users to refresh; errors here abort the run."""
        if not self.enabled:
            return []
        users = await self.store.get_all_users()
        if settings.owner_username and settings.owner_username not in users:
            users.append(settings.owner_username)
        return users

    async def run(self) -> RefreshReport:
        users = await self.prepare()
        await self.refresh_users(users)
        return self.report

    async def get_detail(self, source: str, video_id: str, fallback_title: str) -> ResultItem | None:
        """Resolve a detail, memoizing only successful lookups for this run."""
        cache_key = f"{source}+{video_id}"
        cached = self._details.get(cache_key)
        if cached is not None:
            return cached
        site = self.site_config.find_site(source)
        if site is None:
            return None
        self.report.lookups += 1
        try:
            detail = await self.adapter.detail(
                site, video_id, fallback_title=fallback_title.strip(), timeout=self.timeout
            )
        except Exception as exc:  # noqa: BLE001
            logger.info("Detail lookup for %s failed: %s", cache_key, exc)
            return None
        self._details[cache_key] = detail
        return detail

    async def refresh_users(self, users: list[str]) -> RefreshReport:
        for user in users:
            try:
                await self._refresh_user(user)
            except Exception:  # noqa: BLE001
                self.report.failed += 1
                logger.exception("Refresh failed for user %s", user)
            self.report.users += 1
        logger.info(
            "Refresh finished: %d users, %d records checked, %d updated, %d failed, %d lookups",
            self.report.users,
            self.report.checked,
            self.report.updated,
            self.report.failed,
            self.report.lookups,
        )
        return self.report

    async def _refresh_user(self, user: str) -> None:
        try:
            records = await self.store.get_all_play_records(user)
            for key, record in records.items():
                await self._guarded(user, key, record, self._refresh_play_record)
        except Exception:  # noqa: BLE001
            self.report.failed += 1
            logger.exception("Play record pass failed for user %s", user)

        try:
            favorites = await self.store.get_all_favorites(user)
            for key, favorite in favorites.items():
                await self._guarded(user, key, favorite, self._refresh_favorite)
        except Exception:  # noqa: BLE001
            self.report.failed += 1
            logger.exception("Favorite pass failed for user %s", user)

    async def _guarded(self, user, key, entry, refresh) -> None:
        self.report.checked += 1
        try:
            if await refresh(user, key, entry):
                self.report.updated += 1
        except Exception as exc:  # noqa: BLE001
            self.report.failed += 1
            logger.warning("Skipping %s for user %s: %s", key, user, exc)

    async def _resolve(self, key: str, title: str) -> ResultItem | None:
        # Extra `+` segments after the id are ignored.
        source, video_id = (key.split("+") + ["", ""])[:2]
        if not source or not video_id:
            return None
        return await self.get_detail(source, video_id, title)

    async def _refresh_play_record(self, user: str, key: str, record: PlayRecord) -> bool:
        detail = await self._resolve(key, record.title)
        if detail is None:
            return False
        episode_count = len(detail.episodes)
        if episode_count <= 0 or episode_count == record.total_episodes:
            return False
        updated = record.model_copy(
            update={
                "title": detail.title or record.title,
                "cover": detail.poster or record.cover,
                "year": detail.year or record.year,
                "total_episodes": episode_count,
            }
        )
        await self.store.save_play_record(user, key, updated)
        return True

    async def _refresh_favorite(self, user: str, key: str, favorite: Favorite) -> bool:
        detail = await self._resolve(key, favorite.title)
        if detail is None:
            return False
        episode_count = len(detail.episodes)
        if episode_count <= 0 or episode_count == favorite.total_episodes:
            return False
        updated = favorite.model_copy(
            update={
                "title": detail.title or favorite.title,
                "cover": detail.poster or favorite.cover,
                "year": detail.year or favorite.year,
                "total_episodes": episode_count,
            }
        )
        await self.store.save_favorite(user, key, updated)
        return True
