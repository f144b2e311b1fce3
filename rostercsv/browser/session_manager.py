"""
Session Manager
===============
Owns the single browser instance and the single long-lived
BrowserContext every scrape shares.

Responsibilities:
    1. Launch the first available engine from an ordered list.
    2. Restore persisted ``storage_state`` into the context.
    3. Block heavy resources (images, stylesheets, fonts, media, analytics).
    4. Persist ``storage_state`` back after each scrape run.
    5. Close everything on shutdown.

The context is never torn down between requests; only ``shutdown()``
closes it.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..errors import NoEngineAvailable
from ..run_config import EngineConfig
from .session_store import SessionStateStore

logger = logging.getLogger(__name__)

# Resource types to block for speed
_BLOCKED_RESOURCE_TYPES = frozenset([
    "image", "stylesheet", "font", "media",
])

# URL patterns for analytics/tracking scripts to block
_BLOCKED_URL_PATTERNS = [
    re.compile(r"google[-_]?analytics", re.IGNORECASE),
    re.compile(r"googletagmanager", re.IGNORECASE),
    re.compile(r"gtag/js", re.IGNORECASE),
    re.compile(r"doubleclick\.net", re.IGNORECASE),
    re.compile(r"facebook\.net", re.IGNORECASE),
]


def should_block(resource_type: str, url: str) -> bool:
    """True if a request should be aborted by the resource filter."""
    if resource_type in _BLOCKED_RESOURCE_TYPES:
        return True
    return any(p.search(url or "") for p in _BLOCKED_URL_PATTERNS)


class SessionManager:
    """Lazily created, process-wide browsing session.

    Lifecycle::

        1. ``acquire()``   → launches engine + context on first call,
                             returns the same context afterwards.
        2. ``persist()``   → writes cookies/storage to the state store.
        3. ``shutdown()``  → closes context, browser and Playwright.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional[SessionStateStore] = None,
    ):
        self.config = config or EngineConfig()
        self.store = store or SessionStateStore(self.config.storage_state_path)
        self.engine: str = ""

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._context is not None

    # ── Public API ────────────────────────────────────────────────

    async def acquire(self) -> BrowserContext:
        """Return the shared context, creating it on first use.

        Raises:
            NoEngineAvailable: if none of ``config.engines`` can launch.
        """
        if self._context is not None:
            return self._context

        async with self._lock:
            if self._context is not None:
                return self._context

            self._playwright = await async_playwright().start()
            try:
                self._browser = await self._launch_first_available(self.config.engines)
            except NoEngineAvailable:
                await self._playwright.stop()
                self._playwright = None
                raise

            ctx_kwargs = dict(
                user_agent=self.config.user_agent,
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
                locale=self.config.locale,
            )
            storage_state = self.store.load()
            if storage_state:
                ctx_kwargs["storage_state"] = storage_state

            try:
                self._context = await self._new_context(ctx_kwargs)
                await self._context.route("**/*", self._route_handler)
            except BaseException:
                await self.shutdown()
                raise

            logger.info(
                f"[SESSION] Browser ready: {self.engine} "
                f"(blocking=images,stylesheets,fonts,media,analytics)"
            )
            return self._context

    async def persist(self) -> bool:
        """Save the current storage state. Never raises."""
        if self._context is None:
            return False
        try:
            state = await self._context.storage_state()
        except Exception as e:
            logger.warning(f"[SESSION] Could not read storage state: {e}")
            return False
        return self.store.save(state)

    async def shutdown(self) -> None:
        """Close context, browser and Playwright."""
        if self._context is not None:
            try:
                for p in list(self._context.pages):
                    try:
                        await p.close()
                    except Exception as e:
                        logger.debug(f"[SESSION] Page close error: {e}")
                await self._context.close()
            except Exception as e:
                logger.debug(f"[SESSION] Context close error: {e}")
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"[SESSION] Browser close error: {e}")
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"[SESSION] Playwright stop error: {e}")
            self._playwright = None
        logger.info("[SESSION] Browser closed")

    # ── Internal ──────────────────────────────────────────────────

    async def _new_context(self, ctx_kwargs: dict) -> BrowserContext:
        """Create the context, dropping saved state the engine rejects."""
        try:
            return await self._browser.new_context(**ctx_kwargs)
        except PlaywrightError as e:
            if "storage_state" not in ctx_kwargs:
                raise
            # Structurally bad state that still parsed as JSON
            logger.warning(f"[SESSION] Saved state rejected by engine: {e}, starting clean")
            ctx_kwargs.pop("storage_state")
            return await self._browser.new_context(**ctx_kwargs)

    async def _launch_first_available(self, engines: List[str]) -> Browser:
        """Launch engines in order; the first that starts wins."""
        failures = []
        for name in engines:
            browser_type = getattr(self._playwright, name, None)
            if browser_type is None:
                failures.append(f"{name}: unknown engine")
                continue
            launch_kwargs = {"headless": self.config.headless}
            if name == "chromium":
                launch_kwargs["args"] = ["--disable-dev-shm-usage"]
            try:
                logger.info(f"[SESSION] Launching browser: {name}")
                browser = await browser_type.launch(**launch_kwargs)
            except PlaywrightError as e:
                first_line = str(e).splitlines()[0] if str(e) else type(e).__name__
                logger.warning(f"[SESSION] {name} unavailable: {first_line}")
                failures.append(f"{name}: {first_line}")
                continue
            self.engine = name
            return browser

        raise NoEngineAvailable(
            "No browser engine could be launched ("
            + "; ".join(failures or ["no engines configured"])
            + "). Run: python -m playwright install firefox"
        )

    async def _route_handler(self, route) -> None:
        """Abort heavy and tracking requests."""
        request = route.request
        if should_block(request.resource_type, request.url):
            await route.abort()
            return
        await route.continue_()
