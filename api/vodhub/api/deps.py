from fastapi import Depends

from vodhub.core.site_config import resolve_site_config
from vodhub.schema.site_config import SiteConfig
from vodhub.sources import SourceAdapter, get_adapter
from vodhub.storage import UserStore, get_kv_database


def get_source_adapter() -> SourceAdapter:
    return get_adapter("cms")


def get_user_store() -> UserStore:
    return UserStore(get_kv_database())


async def get_site_config(store: UserStore = Depends(get_user_store)) -> SiteConfig:
    return await resolve_site_config(store)
