"""
Page Fetcher
============
Loads one URL in a fresh tab of the shared browsing context.

Per fetch:
    1. ``new_page()`` on the shared context
    2. ``goto`` with a bounded timeout (``domcontentloaded``)
    3. Anti-bot interstitial check: if present, settle and reload ONCE
    4. Short post-load wait, then read rendered text or HTML
    5. Close the tab on every exit path

Failures are classified for the caller's retry loop:
    - ``NavigationTimeout``: Playwright timeout
    - ``NetworkTransient``: connection reset / empty response
    - ``FetchError``: anything else (not retried)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..errors import FetchError, NavigationTimeout, NetworkTransient
from ..run_config import EngineConfig
from ..utils import is_network_error

logger = logging.getLogger(__name__)

# Cloudflare-style interstitial signature
_CHALLENGE_PATTERN = re.compile(r"cdn-cgi/challenge-platform|Just a moment", re.IGNORECASE)

_BODY_TEXT_JS = "() => (document.body && document.body.innerText) || ''"


def is_challenge(html: str) -> bool:
    """True if the HTML looks like an anti-bot interstitial."""
    return bool(_CHALLENGE_PATTERN.search(html or ""))


class PageFetcher:
    """Fetches rendered pages through a shared ``SessionManager``.

    Usage::

        fetcher = PageFetcher(session, config)
        text = await fetcher.fetch_text(url)
        html = await fetcher.fetch_html(url)
    """

    def __init__(self, session, config: Optional[EngineConfig] = None):
        self.session = session
        self.config = config or EngineConfig()
        self.challenges_seen = 0

    async def fetch_text(self, url: str, wait_ms: Optional[int] = None) -> str:
        """Return the page's rendered plain-text body."""
        text = await self._fetch(url, wait_ms, lambda page: page.evaluate(_BODY_TEXT_JS))
        return text or ""

    async def fetch_html(self, url: str, wait_ms: Optional[int] = None) -> str:
        """Return the page's rendered HTML."""
        html = await self._fetch(url, wait_ms, lambda page: page.content())
        return html or ""

    # ── Internal ──────────────────────────────────────────────────

    async def _fetch(
        self,
        url: str,
        wait_ms: Optional[int],
        read: Callable[[Page], Awaitable[Any]],
    ) -> Any:
        """Open a tab, load ``url``, run ``read`` on it and close the tab.

        Every Playwright failure on the way (opening the tab, navigating,
        reading) is raised as a ``FetchError`` subclass.
        """
        timeout = self.config.navigation_timeout_ms
        page: Optional[Page] = None
        try:
            context = await self.session.acquire()
            page = await context.new_page()
            logger.info(f"[FETCH] GET {url}")
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout)

            if await self._has_challenge(page):
                self.challenges_seen += 1
                logger.warning(
                    f"[FETCH] Challenge page at {url}, waiting "
                    f"{self.config.challenge_settle_ms}ms and reloading once"
                )
                await page.wait_for_timeout(self.config.challenge_settle_ms)
                await page.reload(wait_until="domcontentloaded", timeout=timeout)

            settle = self.config.profile_wait_ms if wait_ms is None else wait_ms
            if settle > 0:
                await page.wait_for_timeout(settle)
            return await read(page)
        except PlaywrightTimeout as e:
            raise NavigationTimeout(url, f"Timed out after {timeout}ms") from e
        except PlaywrightError as e:
            message = str(e).splitlines()[0] if str(e) else type(e).__name__
            if is_network_error(e):
                raise NetworkTransient(url, message) from e
            raise FetchError(url, message) from e
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"[FETCH] Page close error: {e}")

    async def _has_challenge(self, page: Page) -> bool:
        try:
            return is_challenge(await page.content())
        except PlaywrightError:
            return False
