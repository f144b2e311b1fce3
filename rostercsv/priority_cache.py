"""
Priority Cache
==============
Bounded-staleness cache for a fixed allow-list of hot characters.

Read path (``get_cached_or_fresh``):
    - Non-priority name      → direct scrape, cache untouched.
    - Priority name with data → served immediately; older than the
      soft-refresh interval → detached background refresh.
    - Priority name, no data → direct scrape (not written to the cache).

Write path (``update_character_cache``):
    Up to N scrape attempts. A result is committed only when it passes
    the completeness check; between attempts the previous data stays
    visible. When attempts run out the previous data is kept unless
    ``force`` is set or there was none, in which case the last
    incomplete result (or nothing, if every attempt threw) is committed.

At most one refresh per key runs at a time: a per-key ``asyncio.Lock``
guards the write path and a claimed-key set stops duplicate
background scheduling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from .errors import IncompleteDataError
from .refresh_clock import RefreshClock
from .roster_model import count_rows, is_complete
from .run_config import EngineConfig

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


@dataclass
class CacheEntry:
    """Cached CSV for one (region, character) key."""
    region: str
    name: str
    data: Optional[str] = None
    captured_at: float = 0.0
    updating: bool = False

    def age(self, now: float) -> float:
        return now - self.captured_at


class CacheStore:
    """Keyed entries plus one lock per key. Keys are case-insensitive."""

    def __init__(self):
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._locks: Dict[CacheKey, asyncio.Lock] = {}

    @staticmethod
    def key(region: str, name: str) -> CacheKey:
        return (region.strip().upper(), name.strip().lower())

    def get(self, region: str, name: str) -> Optional[CacheEntry]:
        return self._entries.get(self.key(region, name))

    def get_or_create(self, region: str, name: str, now: float) -> CacheEntry:
        k = self.key(region, name)
        entry = self._entries.get(k)
        if entry is None:
            entry = CacheEntry(region=k[0], name=name.strip(), captured_at=now)
            self._entries[k] = entry
        return entry

    def lock_for(self, region: str, name: str) -> asyncio.Lock:
        return self._locks.setdefault(self.key(region, name), asyncio.Lock())

    def remove(self, region: str, name: str) -> None:
        k = self.key(region, name)
        self._entries.pop(k, None)
        lock = self._locks.get(k)
        if lock is not None and not lock.locked():
            del self._locks[k]

    def entries(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item: CacheKey) -> bool:
        return self.key(*item) in self._entries


class PriorityCache:
    """
    Serve-from-cache / refresh decisions over a ``CacheStore``.

    ``scrape`` is any ``async (region, name) -> csv_text`` callable; the
    engine passes the gated scrape pipeline.
    """

    def __init__(
        self,
        scrape: Callable[[str, str], Awaitable[str]],
        config: Optional[EngineConfig] = None,
        store: Optional[CacheStore] = None,
        refresh_clock: Optional[RefreshClock] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.scrape = scrape
        self.config = config or EngineConfig()
        self.store = store or CacheStore()
        self.refresh_clock = refresh_clock or RefreshClock(self.config.refresh_clock_path)
        self._clock = clock
        self._sleep = sleep

        self._background: Set[asyncio.Task] = set()
        self._claimed: Set[CacheKey] = set()
        self._bulk_lock = asyncio.Lock()

    # ── Read path ─────────────────────────────────────────────────

    async def get_cached_or_fresh(self, region: str, name: str) -> str:
        """CSV for a roster, from cache when the name is a priority character."""
        if not self.config.is_priority(name):
            return await self.scrape(region, name)

        now = self._clock()
        entry = self.store.get_or_create(region, name, now)

        if entry.data:
            age = entry.age(now)
            if age > self.config.soft_refresh_seconds and not entry.updating:
                logger.info(
                    f"[CACHE] {region}/{name} is {age / 3600:.1f}h old, refreshing in background"
                )
                self.schedule_refresh(region, name)
            else:
                logger.info(f"[CACHE] Hit {region}/{name} (age {age / 60:.0f}m)")
            return entry.data

        logger.info(f"[CACHE] Miss {region}/{name}, scraping directly")
        return await self.scrape(region, name)

    # ── Write path ────────────────────────────────────────────────

    async def update_character_cache(self, region: str, name: str, force: bool = False) -> bool:
        """Refresh one key. Returns True if a complete result was committed."""
        lock = self.store.lock_for(region, name)
        if lock.locked():
            logger.info(f"[CACHE] Refresh already in flight for {region}/{name}, skipping")
            return False

        async with lock:
            entry = self.store.get_or_create(region, name, self._clock())
            entry.updating = True
            previous = entry.data
            attempts = max(1, self.config.cache_refresh_attempts)
            fallback: Optional[str] = None
            try:
                for attempt in range(1, attempts + 1):
                    try:
                        result = await self._scrape_complete(region, name)
                    except IncompleteDataError as e:
                        fallback = e.csv_text
                        logger.warning(
                            f"[CACHE] {region}/{name} attempt {attempt}/{attempts}: "
                            f"incomplete ({count_rows(e.csv_text)} rows)"
                        )
                    except Exception as e:
                        logger.warning(
                            f"[CACHE] {region}/{name} attempt {attempt}/{attempts} failed: {e}"
                        )
                    else:
                        entry.data = result
                        entry.captured_at = self._clock()
                        logger.info(
                            f"[CACHE] Updated {region}/{name} ({count_rows(result)} rows)"
                        )
                        return True

                    if attempt < attempts:
                        entry.data = previous
                        if self.config.cache_retry_delay_s > 0:
                            await self._sleep(self.config.cache_retry_delay_s)

                if previous is not None and not force:
                    entry.data = previous
                    logger.warning(
                        f"[CACHE] {region}/{name}: no complete result after {attempts} "
                        f"attempts, keeping previous data"
                    )
                else:
                    entry.data = fallback
                    entry.captured_at = self._clock()
                    logger.warning(
                        f"[CACHE] {region}/{name}: committing "
                        f"{'incomplete' if fallback else 'empty'} result after {attempts} attempts"
                    )
                return False
            finally:
                entry.updating = False

    async def _scrape_complete(self, region: str, name: str) -> str:
        csv_text = await self.scrape(region, name)
        if not is_complete(csv_text):
            raise IncompleteDataError(csv_text)
        return csv_text

    # ── Background refresh ────────────────────────────────────────

    def schedule_refresh(self, region: str, name: str) -> Optional[asyncio.Task]:
        """Start a detached refresh unless one is already claimed for the key."""
        k = self.store.key(region, name)
        if k in self._claimed or self.store.lock_for(region, name).locked():
            return None
        self._claimed.add(k)

        task = asyncio.create_task(self._background_refresh(region, name, k))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _background_refresh(self, region: str, name: str, k: CacheKey) -> None:
        try:
            await self.update_character_cache(region, name)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[CACHE] Background refresh of {region}/{name} failed: {e}", exc_info=True)
        finally:
            self._claimed.discard(k)

    async def wait_background(self) -> None:
        """Wait for every in-flight background refresh."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def cancel_background(self) -> None:
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*list(self._background), return_exceptions=True)

    # ── Bulk refresh ──────────────────────────────────────────────

    def bulk_due(self) -> bool:
        """True if a bulk refresh would run now (cooldown elapsed, none running)."""
        if self._bulk_lock.locked():
            return False
        return self.refresh_clock.cooldown_elapsed(self.config.bulk_cooldown_minutes, self._clock())

    async def bulk_refresh(self, advance_clock: bool = True) -> bool:
        """Refresh every priority character, one after another.

        Returns False (no-op) while the cooldown has not elapsed or
        another bulk pass is already running.
        """
        if self._bulk_lock.locked():
            logger.info("[BULK] Bulk refresh already running, skipping")
            return False

        async with self._bulk_lock:
            cooldown = self.config.bulk_cooldown_minutes
            if not self.refresh_clock.cooldown_elapsed(cooldown, self._clock()):
                elapsed = self.refresh_clock.minutes_since(self._clock()) or 0.0
                logger.info(
                    f"[BULK] Cooldown active: {elapsed:.0f}m since last refresh "
                    f"(need {cooldown:.0f}m), skipping"
                )
                return False

            region = self.config.priority_region
            names = list(self.config.priority_characters)
            logger.info(f"[BULK] Refreshing {len(names)} priority character(s) on {region}")
            refreshed = 0
            for name in names:
                try:
                    if await self.update_character_cache(region, name):
                        refreshed += 1
                except Exception as e:
                    logger.error(f"[BULK] Refresh of {region}/{name} failed: {e}")

            if advance_clock:
                self.refresh_clock.mark(self._clock())
            logger.info(f"[BULK] Done: {refreshed}/{len(names)} complete")
            return True

    # ── Housekeeping ──────────────────────────────────────────────

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Drop entries older than the hard expiry. Returns the number removed."""
        now = self._clock() if now is None else now
        removed = 0
        for entry in self.store.entries():
            if entry.updating or self.store.lock_for(entry.region, entry.name).locked():
                continue
            if entry.age(now) > self.config.hard_expiry_seconds:
                self.store.remove(entry.region, entry.name)
                removed += 1
        if removed:
            logger.info(f"[CACHE] Swept {removed} expired entr{'y' if removed == 1 else 'ies'}")
        return removed

    def snapshot(self) -> List[Dict[str, Any]]:
        """Operator view of the cache."""
        now = self._clock()
        return [
            {
                "region": e.region,
                "name": e.name,
                "age_minutes": round(e.age(now) / 60, 1),
                "updating": e.updating,
                "rows": count_rows(e.data) if e.data else 0,
                "complete": bool(e.data) and is_complete(e.data),
            }
            for e in self.store.entries()
        ]
