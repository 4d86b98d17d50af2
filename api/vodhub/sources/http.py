from __future__ import annotations

import json
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from vodhub.sources.base import FailureKind, SourceError

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0 Safari/537.36",
    "Accept": "application/json",
}


class ExternalAPIError(Exception):
    pass


async def _request_json(
    client: httpx.AsyncClient, url: str, params: dict[str, Any] | None, timeout: float
) -> Any:
    response = await client.get(url, params=params, headers=DEFAULT_HEADERS, timeout=timeout)
    if response.status_code >= 500:
        raise ExternalAPIError(f"Server error {response.status_code}")
    response.raise_for_status()
    return response.json()


async def fetch_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    timeout: float = 15.0,
    attempts: int = 1,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """GET a JSON document, retrying 5xx/transport errors, classifying failures.

    Raises SourceError with TIMEOUT, NETWORK or UNKNOWN once retries are spent.
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential_jitter(initial=0.5, max=4),
            retry=retry_if_exception_type((httpx.TransportError, ExternalAPIError)),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
                    return await _request_json(client, url, params, timeout)
    except httpx.TimeoutException as exc:
        raise SourceError(FailureKind.TIMEOUT, f"request timed out: {url}") from exc
    except (httpx.HTTPError, ExternalAPIError) as exc:
        raise SourceError(FailureKind.NETWORK, f"network error: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SourceError(FailureKind.UNKNOWN, f"malformed response from {url}") from exc
    raise SourceError(FailureKind.UNKNOWN, "Unreachable")
