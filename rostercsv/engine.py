"""
Roster Engine
=============
Owns and wires every component of the scrape-and-cache engine::

    caller → RosterEngine.get_csv_for_roster
           → PriorityCache → SerializationGate → RosterScraper
           → PageFetcher → SessionManager → upstream

All state (browser session, cache entries, refresh clock, background
tasks) lives on the instance, so several engines can coexist and
tests can build one from fakes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from .browser.page_fetcher import PageFetcher
from .browser.session_manager import SessionManager
from .gate import SerializationGate
from .priority_cache import CacheStore, PriorityCache
from .refresh_clock import RefreshClock
from .run_config import EngineConfig
from .scrape_pipeline import RosterScraper

logger = logging.getLogger(__name__)


class RosterEngine:
    """
    Scrape-and-cache engine behind the CSV endpoints.

    Usage::

        engine = RosterEngine(EngineConfig.from_env())
        await engine.start()
        csv_text = await engine.get_csv_for_roster("NAE", "Foo")
        await engine.shutdown()
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        session=None,
        fetcher=None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or EngineConfig()
        self.session = session if session is not None else SessionManager(self.config)
        self.fetcher = fetcher if fetcher is not None else PageFetcher(self.session, self.config)
        self.scraper = RosterScraper(self.fetcher, self.config, session=self.session, sleep=sleep)
        self.gate = SerializationGate()
        self.cache = PriorityCache(
            self._gated_scrape,
            self.config,
            store=CacheStore(),
            refresh_clock=RefreshClock(self.config.refresh_clock_path),
            clock=clock,
            sleep=sleep,
        )
        self._tasks: Set[asyncio.Task] = set()
        self._bulk_task: Optional[asyncio.Task] = None
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Launch the browser session and background housekeeping.

        Raises:
            NoEngineAvailable: if no browser engine can be launched.
        """
        if self._started:
            return
        self.config.log_summary()
        await self.session.acquire()
        self._spawn(self._sweep_loop(), "sweep")
        if self.config.warm_cache_on_start and self.config.priority_characters:
            self._spawn(self.cache.bulk_refresh(advance_clock=False), "warm-up")
        self._started = True
        logger.info("[ENGINE] Ready")

    async def shutdown(self) -> None:
        """Cancel background work and close the browser."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.cache.cancel_background()
        await self.session.shutdown()
        self._started = False
        logger.info("[ENGINE] Shut down")

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get_csv_for_roster(self, region: str, name: str) -> str:
        """CSV for ``name``'s roster on ``region``.

        Raises:
            EmptyRosterError: no characters produced any data.
            FetchError: the roster page could not be loaded.
        """
        region = (region or "").strip() or self.config.default_region
        name = (name or "").strip()
        return await self.cache.get_cached_or_fresh(region, name)

    async def bulk_refresh(self, advance_clock: bool = True) -> bool:
        """Refresh every priority character. See ``PriorityCache.bulk_refresh``."""
        return await self.cache.bulk_refresh(advance_clock=advance_clock)

    def bulk_refresh_due(self) -> bool:
        """True if a bulk refresh would run now (cooldown elapsed, none running)."""
        return self.cache.bulk_due()

    def trigger_bulk_refresh(self, advance_clock: bool = True) -> bool:
        """Start a bulk refresh in the background. Returns False if it would be a no-op."""
        if self._bulk_task is not None and not self._bulk_task.done():
            return False
        if not self.bulk_refresh_due():
            return False
        self._bulk_task = self._spawn(
            self.cache.bulk_refresh(advance_clock=advance_clock), "bulk-refresh"
        )
        return True

    def cache_snapshot(self) -> List[Dict[str, Any]]:
        return self.cache.snapshot()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _gated_scrape(self, region: str, name: str) -> str:
        return await self.gate.run(self.scraper.scrape_roster, region, name)

    async def _sweep_loop(self) -> None:
        interval = max(1.0, self.config.sweep_interval_minutes * 60)
        while True:
            await asyncio.sleep(interval)
            self.cache.sweep_expired()

    def _spawn(self, coro, label: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=label)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error(f"[ENGINE] Background task '{label}' failed: {exc}", exc_info=exc)

        task.add_done_callback(_done)
        return task
