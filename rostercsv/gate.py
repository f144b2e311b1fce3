"""
Serialization Gate
==================
Process-wide FIFO admission for scrape runs: one run drives the shared
browsing context at a time, later callers wait in arrival order.

The gate never drops or times out work; it only serializes it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class SerializationGate:
    """Single-slot FIFO queue around an awaitable call.

    ``asyncio.Lock`` wakes waiters in acquisition order, which gives
    the FIFO guarantee.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._waiting = 0

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def waiting(self) -> int:
        return self._waiting

    async def run(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await ``func(*args, **kwargs)`` once every earlier caller is done."""
        if self._lock.locked():
            logger.info(f"[GATE] Scrape queued ({self._waiting + 1} waiting)")
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1
        try:
            return await func(*args, **kwargs)
        finally:
            self._lock.release()
