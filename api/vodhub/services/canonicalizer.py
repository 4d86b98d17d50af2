"""Query canonicalization: script conversion plus variant normalization.

Invariants:
- `to_canonical_simplified` never raises; any failure returns the input.
- `normalize_variants` is idempotent and is applied to both queries and
  result titles so dedup keys agree.
- `expand_variant_queries(q)` never contains `q` and has no duplicates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from vodhub.core.config import settings

logger = logging.getLogger("vodhub.services.canonicalizer")

# Look-alike character -> canonical form. Site indexes mostly use the canonical side.
VARIANT_TABLE: dict[str, str] = {
    "飚": "飙",
}


@dataclass(slots=True)
class SearchQuery:
    raw: str
    canonical: str
    alternates: list[str] = field(default_factory=list)

    @property
    def passes(self) -> list[str]:
        """Queries to run per site: canonical first, then alternates in order."""
        return [self.canonical, *self.alternates] if self.canonical else []


async def to_canonical_simplified(
    raw: str,
    *,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Convert traditional Chinese input to simplified via the conversion service."""
    text = (raw or "").strip()
    if not text:
        return raw
    body = {"text": text, "converter": "Simplified", "apiKey": settings.zh_convert_api_key}
    try:
        async with httpx.AsyncClient(
            transport=transport, timeout=timeout or settings.zh_convert_timeout_seconds
        ) as client:
            response = await client.post(settings.zh_convert_url, json=body)
            if not response.is_success:
                logger.info("Script conversion returned %s; using raw query", response.status_code)
                return raw
            payload = response.json()
    except Exception as exc:  # noqa: BLE001
        logger.info("Script conversion unavailable (%s); using raw query", exc.__class__.__name__)
        return raw
    data = payload.get("data") if isinstance(payload, dict) else None
    converted = data.get("text") if isinstance(data, dict) else None
    if isinstance(converted, str) and converted:
        return converted
    return raw


def normalize_variants(value: str) -> str:
    if not value:
        return value
    for variant, canonical in VARIANT_TABLE.items():
        value = value.replace(variant, canonical)
    return value


def expand_variant_queries(canonical: str) -> list[str]:
    """Derive alternate spellings by swapping table characters back and forth."""
    if not canonical:
        return []
    alternates: list[str] = []
    for variant, target in VARIANT_TABLE.items():
        candidates = []
        if target in canonical:
            candidates.append(canonical.replace(target, variant))
        if variant in canonical:
            candidates.append(canonical.replace(variant, target))
        for candidate in candidates:
            if candidate != canonical and candidate not in alternates:
                alternates.append(candidate)
    return alternates


async def build_search_query(raw: str) -> SearchQuery:
    """Canonicalize a raw query and expand its variant spellings."""
    if not (raw or "").strip():
        return SearchQuery(raw=raw or "", canonical="")
    simplified = await to_canonical_simplified(raw)
    canonical = normalize_variants(simplified.strip()) or raw.strip()
    return SearchQuery(raw=raw, canonical=canonical, alternates=expand_variant_queries(canonical))
