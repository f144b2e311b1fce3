"""
Engine Configuration
====================
Single source of truth for every default the engine consumes.

The session manager, page fetcher, scrape pipeline, priority cache,
HTTP layer and CLI all read from one ``EngineConfig``. Environment
variables and CLI flags populate it; nothing else hard-codes these
numbers.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "base_url": "https://uwuowo.mathi.moe",
    "default_region": "NAE",
    "priority_region": "NAE",
    # Cache timing
    "soft_refresh_hours": 6.0,
    "hard_expiry_hours": 7.0,
    "bulk_cooldown_hours": 5.0,
    "sweep_interval_minutes": 30.0,
    "cache_refresh_attempts": 5,
    "cache_retry_delay_s": 10.0,
    # Scraping
    "stats_concurrency": 1,          # sequential per-character fetches
    "navigation_timeout_ms": 45000,
    "challenge_settle_ms": 6000,
    "roster_wait_ms": 400,
    "profile_wait_ms": 350,
    "network_retries": 3,
    "network_retry_delay_s": 10.0,
    # Browser
    "headless": True,
    "user_agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123 Safari/537.36"
    ),
    "viewport_width": 1366,
    "viewport_height": 900,
    "locale": "en-US",
    # Persisted state
    "storage_state_path": "storage.json",
    "refresh_clock_path": "last_refresh.txt",
    "warm_cache_on_start": False,
    # HTTP layer
    "host": "0.0.0.0",
    "port": 3000,
}

_DEFAULT_ENGINES = ["firefox", "chromium"]

_TRUTHY = {"1", "true", "yes", "on"}


def _split_list(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class EngineConfig:
    """
    Configuration consumed by every engine component.

    Populate via:
      - ``EngineConfig()``                      → all defaults
      - ``EngineConfig(stats_concurrency=3)``   → override one value
      - ``EngineConfig.from_env()``             → from ROSTER_* env vars
      - ``EngineConfig.from_cli_args(ns)``      → env + argparse overrides
    """

    # ---- Upstream ----
    base_url: str = _DEFAULTS["base_url"]
    default_region: str = _DEFAULTS["default_region"]

    # ---- Priority cache ----
    priority_characters: List[str] = field(default_factory=list)
    priority_region: str = _DEFAULTS["priority_region"]
    soft_refresh_hours: float = _DEFAULTS["soft_refresh_hours"]
    hard_expiry_hours: float = _DEFAULTS["hard_expiry_hours"]
    bulk_cooldown_hours: float = _DEFAULTS["bulk_cooldown_hours"]
    sweep_interval_minutes: float = _DEFAULTS["sweep_interval_minutes"]
    cache_refresh_attempts: int = _DEFAULTS["cache_refresh_attempts"]
    cache_retry_delay_s: float = _DEFAULTS["cache_retry_delay_s"]

    # ---- Scraping ----
    stats_concurrency: int = _DEFAULTS["stats_concurrency"]
    navigation_timeout_ms: int = _DEFAULTS["navigation_timeout_ms"]
    challenge_settle_ms: int = _DEFAULTS["challenge_settle_ms"]
    roster_wait_ms: int = _DEFAULTS["roster_wait_ms"]
    profile_wait_ms: int = _DEFAULTS["profile_wait_ms"]
    network_retries: int = _DEFAULTS["network_retries"]
    network_retry_delay_s: float = _DEFAULTS["network_retry_delay_s"]

    # ---- Browser ----
    engines: List[str] = field(default_factory=lambda: list(_DEFAULT_ENGINES))
    headless: bool = _DEFAULTS["headless"]
    user_agent: str = _DEFAULTS["user_agent"]
    viewport_width: int = _DEFAULTS["viewport_width"]
    viewport_height: int = _DEFAULTS["viewport_height"]
    locale: str = _DEFAULTS["locale"]

    # ---- Persisted state ----
    storage_state_path: str = _DEFAULTS["storage_state_path"]
    refresh_clock_path: str = _DEFAULTS["refresh_clock_path"]
    warm_cache_on_start: bool = _DEFAULTS["warm_cache_on_start"]

    # ---- HTTP layer ----
    host: str = _DEFAULTS["host"]
    port: int = _DEFAULTS["port"]

    # -----------------------------------------------------------------------
    # Derived values
    # -----------------------------------------------------------------------
    @property
    def soft_refresh_seconds(self) -> float:
        return self.soft_refresh_hours * 3600

    @property
    def hard_expiry_seconds(self) -> float:
        return self.hard_expiry_hours * 3600

    @property
    def bulk_cooldown_minutes(self) -> float:
        return self.bulk_cooldown_hours * 60

    def is_priority(self, name: str) -> bool:
        """Case-insensitive membership in the priority allow-list."""
        wanted = (name or "").strip().lower()
        return any(wanted == p.strip().lower() for p in self.priority_characters)

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "EngineConfig":
        """Build config from ``ROSTER_*`` environment variables."""
        env = os.environ if environ is None else environ
        cfg = cls()

        def _get(key: str, cast, current):
            raw = env.get(key)
            if raw is None or raw.strip() == "":
                return current
            try:
                return cast(raw.strip())
            except ValueError as exc:
                raise ValueError(f"Invalid value for {key}: {raw!r}") from exc

        cfg.base_url = _get("ROSTER_BASE_URL", str, cfg.base_url).rstrip("/")
        cfg.default_region = _get("ROSTER_DEFAULT_REGION", str, cfg.default_region)
        cfg.priority_characters = _get(
            "ROSTER_PRIORITY_CHARACTERS", _split_list, cfg.priority_characters
        )
        cfg.priority_region = _get("ROSTER_PRIORITY_REGION", str, cfg.priority_region)
        cfg.soft_refresh_hours = _get("ROSTER_SOFT_REFRESH_HOURS", float, cfg.soft_refresh_hours)
        cfg.hard_expiry_hours = _get("ROSTER_HARD_EXPIRY_HOURS", float, cfg.hard_expiry_hours)
        cfg.bulk_cooldown_hours = _get("ROSTER_BULK_COOLDOWN_HOURS", float, cfg.bulk_cooldown_hours)
        cfg.sweep_interval_minutes = _get(
            "ROSTER_SWEEP_INTERVAL_MINUTES", float, cfg.sweep_interval_minutes
        )
        cfg.cache_retry_delay_s = _get("ROSTER_CACHE_RETRY_DELAY_S", float, cfg.cache_retry_delay_s)
        cfg.stats_concurrency = _get("ROSTER_STATS_CONCURRENCY", int, cfg.stats_concurrency)
        cfg.navigation_timeout_ms = _get(
            "ROSTER_NAVIGATION_TIMEOUT_MS", int, cfg.navigation_timeout_ms
        )
        cfg.challenge_settle_ms = _get("ROSTER_CHALLENGE_SETTLE_MS", int, cfg.challenge_settle_ms)
        cfg.network_retries = _get("ROSTER_NETWORK_RETRIES", int, cfg.network_retries)
        cfg.network_retry_delay_s = _get(
            "ROSTER_NETWORK_RETRY_DELAY_S", float, cfg.network_retry_delay_s
        )
        cfg.engines = _get("ROSTER_ENGINES", _split_list, cfg.engines)
        cfg.headless = _get("ROSTER_HEADLESS", lambda v: v.lower() in _TRUTHY, cfg.headless)
        cfg.storage_state_path = _get("ROSTER_STORAGE_STATE", str, cfg.storage_state_path)
        cfg.refresh_clock_path = _get("ROSTER_REFRESH_CLOCK", str, cfg.refresh_clock_path)
        cfg.warm_cache_on_start = _get(
            "ROSTER_WARM_CACHE", lambda v: v.lower() in _TRUTHY, cfg.warm_cache_on_start
        )
        cfg.host = _get("HOST", str, cfg.host)
        cfg.port = _get("PORT", int, cfg.port)
        return cfg

    @classmethod
    def from_cli_args(cls, args, environ: Optional[dict] = None) -> "EngineConfig":
        """Build config from the environment, then apply argparse overrides."""
        cfg = cls.from_env(environ)
        if getattr(args, "concurrency", None) is not None:
            cfg.stats_concurrency = args.concurrency
        if getattr(args, "timeout", None) is not None:
            cfg.navigation_timeout_ms = args.timeout * 1000
        if getattr(args, "headed", False):
            cfg.headless = False
        if getattr(args, "storage_state", None):
            cfg.storage_state_path = args.storage_state
        if getattr(args, "host", None):
            cfg.host = args.host
        if getattr(args, "port", None) is not None:
            cfg.port = args.port
        return cfg

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("ROSTER ENGINE CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Upstream:         {self.base_url}")
        logger.info(f"  Default Region:   {self.default_region}")
        logger.info(f"  Engines:          {', '.join(self.engines)}")
        logger.info(f"  Headless:         {self.headless}")
        logger.info(f"  Nav Timeout:      {self.navigation_timeout_ms}ms")
        logger.info(f"  Concurrency:      {self.stats_concurrency} per-character fetch(es)")
        logger.info(
            f"  Network Retry:    {self.network_retries}x every {self.network_retry_delay_s}s"
        )
        if self.priority_characters:
            logger.info(
                f"  Priority:         {len(self.priority_characters)} character(s) "
                f"on {self.priority_region}"
            )
            logger.info(
                f"  Cache Timing:     soft {self.soft_refresh_hours}h, "
                f"expiry {self.hard_expiry_hours}h, cooldown {self.bulk_cooldown_hours}h"
            )
        logger.info(f"  Session State:    {self.storage_state_path}")
        logger.info("=" * 60)
