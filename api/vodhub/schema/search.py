"""Search result, failure, and stream event schemas.

Wire keys (`pageResults`, `failedSources`, `aggregatedResults`) are consumed
by existing clients and must not change.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResultItem(BaseModel):
    """Normalized search hit produced by a source adapter."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    title: str = ""
    poster: str = ""
    episodes: list[str] = Field(default_factory=list)
    source: str = ""
    source_name: str = ""
    year: str = ""
    desc: str = ""
    type_name: str = ""
    douban_id: int = 0

    @field_validator("id", "title", "poster", "source", "source_name", "year", "desc", "type_name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("episodes", mode="before")
    @classmethod
    def _coerce_episodes(cls, value: Any) -> list[str]:
        if not value:
            return []
        if isinstance(value, (list, tuple)):
            return [str(entry) for entry in value if entry]
        return []

    @field_validator("douban_id", mode="before")
    @classmethod
    def _coerce_douban_id(cls, value: Any) -> int:
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0


class FailedSource(BaseModel):
    """Per-site failure entry returned alongside aggregate results."""

    name: str
    key: str
    error: str
    kind: str


class SitePageEvent(BaseModel):
    """One deduplicated page discovered on a site."""

    model_config = ConfigDict(populate_by_name=True)

    site: str
    page_results: list[ResultItem] = Field(alias="pageResults")


class FailureSummaryEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    failed_sources: list[FailedSource] = Field(alias="failedSources")


class AggregateEvent(BaseModel):
    """Closing event carrying every streamed result."""

    model_config = ConfigDict(populate_by_name=True)

    aggregated_results: list[ResultItem] = Field(alias="aggregatedResults")


StreamEvent = SitePageEvent | FailureSummaryEvent | AggregateEvent
