"""Site and admin configuration schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SourceSite(BaseModel):
    """Upstream CMS endpoint; immutable for the lifetime of a request."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    api: str
    detail: str = ""
    disabled: bool = False


class CustomCategory(BaseModel):
    name: str = ""
    type: Literal["movie", "tv"]
    query: str
    disabled: bool = False


class SiteConfig(BaseModel):
    """Resolved runtime configuration for search and categories."""

    cache_time: int
    sources: list[SourceSite] = Field(default_factory=list)
    custom_categories: list[CustomCategory] = Field(default_factory=list)
    disable_content_filter: bool = False

    def enabled_sites(self, allow: list[str] | None = None) -> list[SourceSite]:
        """Return enabled sites in configured order, narrowed by an allow-list."""
        sites = [site for site in self.sources if not site.disabled]
        if allow is not None:
            allowed = set(allow)
            sites = [site for site in sites if site.key in allowed]
        return sites

    def find_site(self, key: str) -> SourceSite | None:
        for site in self.sources:
            if site.key == key and not site.disabled:
                return site
        return None


class AdminSourceEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    name: str
    api: str
    detail: str = ""
    disabled: bool = False


class AdminSiteSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    cache_time: int | None = Field(default=None, alias="SiteInterfaceCacheTime")
    disable_content_filter: bool = Field(default=False, alias="DisableYellowFilter")


class AdminConfig(BaseModel):
    """Admin overrides persisted under the `admin-config` key."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source_config: list[AdminSourceEntry] = Field(default_factory=list, alias="SourceConfig")
    site_config: AdminSiteSettings = Field(default_factory=AdminSiteSettings, alias="SiteConfig")
    custom_categories: list[CustomCategory] = Field(default_factory=list, alias="CustomCategories")
