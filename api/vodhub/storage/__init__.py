"""Key-value storage façade for user records."""

from vodhub.storage.kv import KVDatabase, MemoryKVDatabase, RedisKVDatabase, get_kv_database
from vodhub.storage.user_store import UserStore, make_key

__all__ = [
    "KVDatabase",
    "MemoryKVDatabase",
    "RedisKVDatabase",
    "UserStore",
    "get_kv_database",
    "make_key",
]
