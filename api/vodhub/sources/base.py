"""Base adapter primitives for upstream content sources."""

from __future__ import annotations

import enum
from typing import AsyncIterator

from vodhub.schema.search import ResultItem
from vodhub.schema.site_config import SourceSite


class FailureKind(str, enum.Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    NO_RESULTS = "no_results"
    UNKNOWN = "unknown"


# Stable, user-visible reason strings attached to failed sources.
FAILURE_REASONS: dict[FailureKind, str] = {
    FailureKind.TIMEOUT: "timeout",
    FailureKind.NETWORK: "network error",
    FailureKind.NO_RESULTS: "no results",
    FailureKind.UNKNOWN: "unknown",
}


class SourceError(Exception):
    """Adapter failure carrying a classified kind."""

    def __init__(self, kind: FailureKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class SourceAdapter:
    """Abstract adapter interface for upstream search sites."""

    def search(
        self,
        site: SourceSite,
        query: str,
        *,
        paginate: bool = True,
        timeout: float | None = None,
    ) -> AsyncIterator[list[ResultItem]]:
        """Yield result pages lazily; the sequence is finite and not restartable."""
        raise NotImplementedError

    async def detail(
        self,
        site: SourceSite,
        video_id: str,
        *,
        fallback_title: str = "",
        timeout: float | None = None,
    ) -> ResultItem:
        """Resolve the authoritative detail for one item on a site."""
        raise NotImplementedError
