"""
Scrape Pipeline
===============
Two-stage roster scrape:

1. Enumerate: load ``/character/{region}/{name}/roster`` and collect
   every linked character name (deduplicated, first-seen order).
2. Per-character: for each name try the base profile URL, then
   ``/profile``, then ``/overview``; stop at the first page that yields
   an item level or combat power. Network failures are retried against
   the same URL before falling through to the next one.

Then sort by item level, serialize to CSV and persist session state.

A character whose every URL fails is still included with empty stats;
only a roster with zero characters is an error.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional
from urllib.parse import quote

from .errors import EmptyRosterError, FetchError
from .field_extractor import (
    extract_class,
    extract_combat_power,
    extract_item_level,
    extract_roster_names,
)
from .roster_model import CharacterRecord, sort_records, to_csv
from .run_config import EngineConfig
from .utils import RetryHandler

logger = logging.getLogger(__name__)

_PROFILE_SUFFIXES = ("", "/profile", "/overview")


class RosterScraper:
    """
    Runs the roster → character-stats pipeline over a ``PageFetcher``.

    Usage::

        scraper = RosterScraper(fetcher, config, session=session)
        csv_text = await scraper.scrape_roster("NAE", "Foo")
    """

    def __init__(
        self,
        fetcher,
        config: Optional[EngineConfig] = None,
        session=None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.config = config or EngineConfig()
        self.session = session
        self.retry = RetryHandler(
            max_attempts=self.config.network_retries,
            delay=self.config.network_retry_delay_s,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def character_url(self, region: str, name: str) -> str:
        return (
            f"{self.config.base_url}/character/"
            f"{quote(region, safe='')}/{quote(name, safe='')}"
        )

    def roster_url(self, region: str, name: str) -> str:
        return self.character_url(region, name) + "/roster"

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def scrape_roster(self, region: str, name: str) -> str:
        """Full pipeline → CSV text.

        Raises:
            EmptyRosterError: if no character records were produced.
            FetchError: if the roster page itself could not be loaded.
        """
        records = await self.scrape_records(region, name)
        return to_csv(records)

    async def scrape_records(self, region: str, name: str) -> List[CharacterRecord]:
        """Full pipeline → records sorted by item level (descending)."""
        t_start = time.monotonic()
        try:
            names = await self.enumerate_roster(region, name)
            records = await self._fetch_all(region, names)
        finally:
            if self.session is not None:
                await self.session.persist()

        records = [r for r in records if r.name]
        if not records:
            raise EmptyRosterError(region, name)

        with_stats = sum(1 for r in records if r.has_stats)
        logger.info(
            f"[ROSTER] {region}/{name}: {len(records)} characters "
            f"({with_stats} with stats) in {time.monotonic() - t_start:.1f}s"
        )
        return sort_records(records)

    async def enumerate_roster(self, region: str, name: str) -> List[str]:
        """Character names linked from the roster page."""
        url = self.roster_url(region, name)
        html = await self.retry.execute_with_retry(
            self.fetcher.fetch_html, url, wait_ms=self.config.roster_wait_ms
        )
        names = extract_roster_names(html, self.config.base_url)
        logger.info(f"[ROSTER] Roster names found: {len(names)}")
        return names

    async def fetch_character(self, region: str, name: str) -> CharacterRecord:
        """Stats for one character, trying each profile URL in turn. Never raises."""
        base = self.character_url(region, name)
        best = CharacterRecord(name=name)

        for suffix in _PROFILE_SUFFIXES:
            url = base + suffix
            try:
                text = await self.retry.execute_with_retry(
                    self.fetcher.fetch_text, url, wait_ms=self.config.profile_wait_ms
                )
            except FetchError as e:
                logger.warning(f"[ROSTER] No data from {url}: {e}")
                continue
            except Exception as e:
                logger.warning(f"[ROSTER] Character page failed {url}: {e}")
                continue

            record = CharacterRecord(
                name=name,
                character_class=extract_class(text),
                item_level=extract_item_level(text),
                combat_power=extract_combat_power(text),
            )
            if record.has_stats:
                record.character_class = record.character_class or best.character_class
                return record
            if record.character_class and not best.character_class:
                best.character_class = record.character_class

        logger.warning(f"[ROSTER] No stats for {name} after {len(_PROFILE_SUFFIXES)} URLs")
        return best

    async def _fetch_all(self, region: str, names: List[str]) -> List[CharacterRecord]:
        """Per-character fetches on a bounded pool; result order matches ``names``."""
        if not names:
            return []
        semaphore = asyncio.Semaphore(max(1, self.config.stats_concurrency))

        async def _bounded(character: str) -> CharacterRecord:
            async with semaphore:
                return await self.fetch_character(region, character)

        return list(await asyncio.gather(*(_bounded(n) for n in names)))
