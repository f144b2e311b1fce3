"""
Session State Store
===================
Persists the browser ``storage_state`` (cookies + localStorage) between
process runs as a single JSON document.

Read once when the browsing context is created, written after every
scrape run. Both directions are best-effort: a missing, unreadable or
corrupt file only means the next context starts without cookies.

Usage::

    store = SessionStateStore("storage.json")
    state = store.load()          # dict or None
    ...
    store.save(await context.storage_state())
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SessionStateStore:
    """File-backed blob store for Playwright storage state."""

    def __init__(self, path: str = "storage.json"):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        """Return the saved storage state, or None if absent or unusable."""
        if not self.path.exists():
            logger.info(f"[SESSION] No saved session state at {self.path}")
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            logger.warning(f"[SESSION] Ignoring unreadable session state {self.path}: {exc}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"[SESSION] Ignoring session state {self.path}: not a JSON object")
            return None

        cookies = data.get("cookies", [])
        logger.info(f"[SESSION] Restored session state: {len(cookies)} cookies")
        return data

    def save(self, state: dict) -> bool:
        """Write storage state. Returns False (and logs) on failure."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(state), encoding="utf-8")
            tmp.replace(self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning(f"[SESSION] Failed to persist session state: {exc}")
            return False
        logger.debug(f"[SESSION] Session state saved to {self.path}")
        return True
