"""Scheduled metadata refresh for RQ workers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict

from vodhub.core.site_config import resolve_site_config
from vodhub.services.refresher import MetadataRefresher
from vodhub.sources import get_adapter
from vodhub.storage import UserStore, get_kv_database

logger = logging.getLogger("vodhub.jobs.refresh")


def refresh_user_media_job() -> dict[str, int]:
    """Refresh every user's play history and favorites against live sources."""

    async def _run() -> dict[str, int]:
        store = UserStore(get_kv_database())
        site_config = await resolve_site_config(store)
        refresher = MetadataRefresher(store, get_adapter("cms"), site_config)
        report = await refresher.run()
        return asdict(report)

    report = asyncio.run(_run())
    logger.info("Refreshed %d users: %d records updated", report["users"], report["updated"])
    return report
