"""Line-delimited JSON event channel with explicit cancellation.

Invariants:
- Writes after stop, close, or cancellation return False and never raise.
- Cancellation stops the channel and closes the write side exactly once.
- Consumers stop at close, or immediately at cancellation: lines queued but
  not yet delivered are dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable

from pydantic import BaseModel

logger = logging.getLogger("vodhub.services.streaming")

_CLOSED = object()


class CancellationToken:
    """One-shot cancellation signal shared by the orchestrator and transport."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def add_callback(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:  # noqa: BLE001
                logger.exception("Cancellation callback failed")


def encode_event(event: BaseModel | dict[str, Any]) -> str:
    """Serialize one event as a JSON line."""
    payload = event.model_dump(by_alias=True) if isinstance(event, BaseModel) else event
    return json.dumps(payload, ensure_ascii=False) + "\n"


class NdjsonChannel:
    """Unbounded producer/consumer queue of encoded JSON lines."""

    def __init__(self, token: CancellationToken | None = None) -> None:
        self.token = token or CancellationToken()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._stopped = False
        self._closed = False
        self.token.add_callback(self._on_cancel)

    @property
    def stopped(self) -> bool:
        return self._stopped or self.token.cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_cancel(self) -> None:
        self._stopped = True
        self.close()

    async def write(self, event: BaseModel | dict[str, Any]) -> bool:
        """Queue one event; returns False when the consumer is gone."""
        if self.stopped or self._closed:
            return False
        try:
            line = encode_event(event)
            self._queue.put_nowait(line)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Dropping stream write after failure: %s", exc)
            self._stopped = True
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            if self.token.cancelled:
                return
            line = await self._queue.get()
            if line is _CLOSED or self.token.cancelled:
                return
            yield line
