"""Site configuration: the JSON file overlaid by stored admin overrides.

File format:

    {
      "cache_time": 7200,
      "api_site": {"key": {"api": "...", "name": "...", "detail": "...", "disabled": false}},
      "custom_category": [{"name": "...", "type": "movie", "query": "..."}]
    }
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vodhub.core.config import settings
from vodhub.schema.site_config import CustomCategory, SiteConfig, SourceSite
from vodhub.storage.user_store import UserStore

logger = logging.getLogger("vodhub.core.site_config")


def parse_site_config(data: dict[str, Any]) -> SiteConfig:
    sources = [
        SourceSite.model_validate({"key": key, **(entry or {})})
        for key, entry in (data.get("api_site") or {}).items()
    ]
    categories = [CustomCategory.model_validate(entry) for entry in data.get("custom_category") or []]
    return SiteConfig(
        cache_time=int(data.get("cache_time") or settings.default_cache_time_seconds),
        sources=sources,
        custom_categories=categories,
        disable_content_filter=settings.disable_content_filter,
    )


def load_site_config(path: str | Path | None = None) -> SiteConfig:
    """Read the site config file; a missing or invalid file yields an empty config."""
    target = Path(path or settings.site_config_path)
    if not target.exists():
        logger.warning("Site config %s not found; no sources configured", target)
        return parse_site_config({})
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
        return parse_site_config(data)
    except (json.JSONDecodeError, ValidationError, AttributeError, TypeError, ValueError):
        logger.exception("Site config %s is invalid; no sources configured", target)
        return parse_site_config({})


@lru_cache
def cached_site_config(path: str) -> SiteConfig:
    """Parse the site config file once per path for the process lifetime."""
    return load_site_config(path)


async def resolve_site_config(store: UserStore | None = None) -> SiteConfig:
    """Return the file config with admin overrides applied on shared storage."""
    config = cached_site_config(settings.site_config_path).model_copy(deep=True)
    if store is None or not settings.shared_storage:
        return config
    admin = await store.get_admin_config()
    if admin is None:
        return config
    update: dict[str, Any] = {
        "disable_content_filter": config.disable_content_filter or admin.site_config.disable_content_filter,
    }
    if admin.source_config:
        update["sources"] = [SourceSite.model_validate(entry.model_dump()) for entry in admin.source_config]
    if admin.custom_categories:
        update["custom_categories"] = admin.custom_categories
    if admin.site_config.cache_time:
        update["cache_time"] = admin.site_config.cache_time
    return config.model_copy(update=update)
