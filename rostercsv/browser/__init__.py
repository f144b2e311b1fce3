"""
Browser Module
==============
Everything that touches the automation engine.

    - ``SessionStateStore``: persisted cookies/storage (JSON blob)
    - ``SessionManager``: one browser, one shared BrowserContext
    - ``PageFetcher``: load a URL, handle the interstitial, read text
"""

from .session_store import SessionStateStore
from .session_manager import SessionManager, should_block
from .page_fetcher import PageFetcher, is_challenge

__all__ = [
    "SessionStateStore",
    "SessionManager",
    "should_block",
    "PageFetcher",
    "is_challenge",
]
