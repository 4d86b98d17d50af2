"""Key-value backends behind the user record store.

Invariants:
- `set(key, None)` deletes the key.
- `list(prefix)` returns every (key, value) pair whose key starts with prefix.
- The memory backend is process-scoped: it starts empty on process start and
  is never shared across processes, so it only suits single-instance runs.
"""

from __future__ import annotations

import logging
import re

from redis.asyncio import Redis

from vodhub.core.config import settings

logger = logging.getLogger("vodhub.storage.kv")

_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


class KVDatabase:
    """Abstract string key-value store."""

    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    async def set(self, key: str, value: str | None) -> None:
        raise NotImplementedError

    async def list(self, prefix: str) -> list[tuple[str, str]]:
        raise NotImplementedError


class MemoryKVDatabase(KVDatabase):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str | None) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

    async def list(self, prefix: str) -> list[tuple[str, str]]:
        return [(key, value) for key, value in self._data.items() if key.startswith(prefix)]

    def clear(self) -> None:
        self._data.clear()


class RedisKVDatabase(KVDatabase):
    """Shared backend; prefix listing walks SCAN with an escaped glob."""

    def __init__(self, url: str | None = None, *, client: Redis | None = None) -> None:
        self._client = client or Redis.from_url(url or settings.redis_url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str | None) -> None:
        if value is None:
            await self._client.delete(key)
        else:
            await self._client.set(key, value)

    async def list(self, prefix: str) -> list[tuple[str, str]]:
        pattern = _GLOB_SPECIALS.sub(r"\\\1", prefix) + "*"
        # SCAN may yield a key more than once.
        keys = list(dict.fromkeys([key async for key in self._client.scan_iter(match=pattern, count=500)]))
        if not keys:
            return []
        values = await self._client.mget(keys)
        return [(key, value) for key, value in zip(keys, values) if value is not None]


_memory_db = MemoryKVDatabase()
_redis_db: RedisKVDatabase | None = None


def get_kv_database() -> KVDatabase:
    """Return the process-wide backend for the configured storage type."""
    global _redis_db
    if settings.storage_type == "redis":
        if _redis_db is None:
            logger.info("Using Redis key-value storage at %s", settings.redis_url)
            _redis_db = RedisKVDatabase(settings.redis_url)
        return _redis_db
    return _memory_db
