from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import JSONResponse

from vodhub.api.deps import get_site_config, get_source_adapter, get_user_store
from vodhub.schema.site_config import SiteConfig
from vodhub.services.refresher import MetadataRefresher
from vodhub.sources import SourceAdapter
from vodhub.storage import UserStore

logger = logging.getLogger("vodhub.api.cron")

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
async def run_cron(
    background_tasks: BackgroundTasks,
    store: UserStore = Depends(get_user_store),
    adapter: SourceAdapter = Depends(get_source_adapter),
    site_config: SiteConfig = Depends(get_site_config),
):
    """Kick off a metadata refresh; per-record failures never surface here."""
    refresher = MetadataRefresher(store, adapter, site_config)
    try:
        users = await refresher.prepare()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Cron refresh could not start")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Cron job failed",
                "error": str(exc) or exc.__class__.__name__,
                "timestamp": _timestamp(),
            },
        )
    if users:
        background_tasks.add_task(refresher.refresh_users, users)
    return {
        "success": True,
        "message": "Cron job executed successfully",
        "timestamp": _timestamp(),
    }
