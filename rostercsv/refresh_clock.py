"""
Refresh Clock
=============
Durable timestamp of the last explicitly triggered bulk refresh.

Stored as a single UTC line ``YYYY-MM-DD HH:MM:SS`` so it survives
restarts and can be inspected or reset by hand. A missing or
unparseable file counts as "never refreshed".
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class RefreshClock:
    """File-backed last-bulk-refresh timestamp."""

    def __init__(self, path: str = "last_refresh.txt"):
        self.path = Path(path)

    def last(self) -> Optional[datetime]:
        """Timestamp of the last bulk refresh, or None."""
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning(f"[CLOCK] Cannot read {self.path}: {exc}")
            return None
        try:
            return datetime.strptime(raw, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            logger.warning(f"[CLOCK] Unparseable refresh timestamp {raw!r}, treating as never")
            return None

    def minutes_since(self, now: Optional[float] = None) -> Optional[float]:
        """Minutes elapsed since the last bulk refresh, or None if never."""
        last = self.last()
        if last is None:
            return None
        now = time.time() if now is None else now
        return (now - last.timestamp()) / 60

    def cooldown_elapsed(self, cooldown_minutes: float, now: Optional[float] = None) -> bool:
        elapsed = self.minutes_since(now)
        if elapsed is None:
            return True
        return elapsed >= cooldown_minutes

    def mark(self, now: Optional[float] = None) -> None:
        """Record ``now`` as the last bulk refresh."""
        now = time.time() if now is None else now
        stamp = datetime.fromtimestamp(now, tz=timezone.utc).strftime(TIMESTAMP_FORMAT)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(stamp + "\n", encoding="utf-8")
        except OSError as exc:
            logger.error(f"[CLOCK] Failed to write {self.path}: {exc}")
            return
        logger.info(f"[CLOCK] Bulk refresh recorded at {stamp} UTC")
