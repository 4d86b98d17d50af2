"""User record CRUD composed over a key-value backend.

Keys are `#`-joined: `playrecord#<user>#<source+id>`, `favorite#...`,
`password#<user>`, `search-history#<user>#<keyword>`,
`skip-config#<user>#<source>#<id>` and the singleton `admin-config`.
Identifiers containing the delimiter are rejected.
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel

from vodhub.schema.site_config import AdminConfig
from vodhub.schema.user_media import Favorite, PlayRecord, SkipConfig
from vodhub.storage.kv import KVDatabase

KEY_DELIMITER = "#"
ADMIN_CONFIG_KEY = "admin-config"

ModelT = TypeVar("ModelT", bound=BaseModel)


def make_key(*parts: str) -> str:
    """Join key parts, refusing identifiers that would break prefix listing."""
    for part in parts:
        if KEY_DELIMITER in part:
            raise ValueError(f"Identifier {part!r} must not contain {KEY_DELIMITER!r}")
    return KEY_DELIMITER.join(parts)


class UserStore:
    """Play history, favorites, and per-user settings over a KVDatabase."""

    def __init__(self, db: KVDatabase) -> None:
        self.db = db

    async def _get_model(self, key: str, model: type[ModelT]) -> ModelT | None:
        raw = await self.db.get(key)
        if raw is None:
            return None
        return model.model_validate_json(raw)

    async def _list_models(self, prefix: str, model: type[ModelT]) -> dict[str, ModelT]:
        entries = await self.db.list(prefix)
        return {key[len(prefix):]: model.model_validate_json(value) for key, value in entries}

    async def get_play_record(self, user: str, key: str) -> PlayRecord | None:
        return await self._get_model(make_key("playrecord", user, key), PlayRecord)

    async def save_play_record(self, user: str, key: str, record: PlayRecord) -> None:
        await self.db.set(make_key("playrecord", user, key), record.model_dump_json())

    async def get_all_play_records(self, user: str) -> dict[str, PlayRecord]:
        return await self._list_models(make_key("playrecord", user, ""), PlayRecord)

    async def delete_play_record(self, user: str, key: str) -> None:
        await self.db.set(make_key("playrecord", user, key), None)

    async def get_favorite(self, user: str, key: str) -> Favorite | None:
        return await self._get_model(make_key("favorite", user, key), Favorite)

    async def save_favorite(self, user: str, key: str, favorite: Favorite) -> None:
        await self.db.set(make_key("favorite", user, key), favorite.model_dump_json())

    async def get_all_favorites(self, user: str) -> dict[str, Favorite]:
        return await self._list_models(make_key("favorite", user, ""), Favorite)

    async def delete_favorite(self, user: str, key: str) -> None:
        await self.db.set(make_key("favorite", user, key), None)

    async def register_user(self, user: str, password: str) -> None:
        await self.db.set(make_key("password", user), password)

    async def check_user_exist(self, user: str) -> bool:
        return await self.db.get(make_key("password", user)) is not None

    async def delete_user(self, user: str) -> None:
        await self.db.set(make_key("password", user), None)

    async def get_all_users(self) -> list[str]:
        prefix = make_key("password", "")
        return [key[len(prefix):] for key, _ in await self.db.list(prefix)]

    async def get_search_history(self, user: str) -> list[str]:
        return [value for _, value in await self.db.list(make_key("search-history", user, ""))]

    async def add_search_history(self, user: str, keyword: str) -> None:
        await self.db.set(make_key("search-history", user, keyword), keyword)

    async def delete_search_history(self, user: str, keyword: str | None = None) -> None:
        """Delete one keyword, or the whole history when keyword is omitted."""
        if keyword:
            await self.db.set(make_key("search-history", user, keyword), None)
            return
        for key, _ in await self.db.list(make_key("search-history", user, "")):
            await self.db.set(key, None)

    async def get_skip_config(self, user: str, source: str, video_id: str) -> SkipConfig | None:
        return await self._get_model(make_key("skip-config", user, source, video_id), SkipConfig)

    async def set_skip_config(self, user: str, source: str, video_id: str, config: SkipConfig) -> None:
        await self.db.set(make_key("skip-config", user, source, video_id), config.model_dump_json())

    async def delete_skip_config(self, user: str, source: str, video_id: str) -> None:
        await self.db.set(make_key("skip-config", user, source, video_id), None)

    async def get_all_skip_configs(self, user: str) -> dict[str, SkipConfig]:
        """Return skip configs keyed by `source+id`."""
        prefix = make_key("skip-config", user, "")
        configs: dict[str, SkipConfig] = {}
        for key, value in await self.db.list(prefix):
            source, _, video_id = key[len(prefix):].partition(KEY_DELIMITER)
            configs[f"{source}+{video_id}"] = SkipConfig.model_validate_json(value)
        return configs

    async def get_admin_config(self) -> AdminConfig | None:
        return await self._get_model(ADMIN_CONFIG_KEY, AdminConfig)

    async def set_admin_config(self, config: AdminConfig) -> None:
        await self.db.set(ADMIN_CONFIG_KEY, config.model_dump_json(by_alias=True))
