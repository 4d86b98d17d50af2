"""Adapter registry for upstream search sources."""

from __future__ import annotations

from typing import Dict

from vodhub.sources.base import FAILURE_REASONS, FailureKind, SourceAdapter, SourceError
from vodhub.sources.cms import CmsSourceAdapter

_ADAPTERS: Dict[str, SourceAdapter] = {}


def get_adapter(kind: str = "cms") -> SourceAdapter:
    """Return a shared adapter instance for the given source kind."""
    key = kind.lower()
    if key not in _ADAPTERS:
        if key == "cms":
            _ADAPTERS[key] = CmsSourceAdapter()
        else:
            raise ValueError(f"Unsupported source kind {kind}")
    return _ADAPTERS[key]


__all__ = [
    "FAILURE_REASONS",
    "CmsSourceAdapter",
    "FailureKind",
    "SourceAdapter",
    "SourceError",
    "get_adapter",
]
