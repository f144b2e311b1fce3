"""
Tests for run_config.py (EngineConfig).
"""

import argparse

import pytest

from rostercsv.run_config import EngineConfig


class TestDefaults:
    """Built-in defaults."""

    def test_defaults(self):
        """Timing and scraping defaults."""
        cfg = EngineConfig()
        assert cfg.base_url == "https://uwuowo.mathi.moe"
        assert cfg.soft_refresh_seconds == 6 * 3600
        assert cfg.hard_expiry_seconds == 7 * 3600
        assert cfg.bulk_cooldown_minutes == 300
        assert cfg.stats_concurrency == 1
        assert cfg.engines == ["firefox", "chromium"]
        assert cfg.priority_characters == []

    def test_list_defaults_not_shared(self):
        """Mutable defaults are per instance."""
        a, b = EngineConfig(), EngineConfig()
        a.engines.append("webkit")
        assert b.engines == ["firefox", "chromium"]

    def test_is_priority_case_insensitive(self):
        """Allow-list matching ignores case and surrounding space."""
        cfg = EngineConfig(priority_characters=["Foo", " Bar "])
        assert cfg.is_priority("foo")
        assert cfg.is_priority(" BAR")
        assert not cfg.is_priority("Baz")
        assert not cfg.is_priority("")


class TestFromEnv:
    """ROSTER_* environment variables."""

    def test_empty_env_gives_defaults(self):
        """No variables → defaults."""
        assert EngineConfig.from_env({}) == EngineConfig()

    def test_values_parsed(self):
        """Typed parsing for every kind of field."""
        cfg = EngineConfig.from_env({
            "ROSTER_BASE_URL": "https://mirror.example/",
            "ROSTER_PRIORITY_CHARACTERS": "Foo, Bar,,Baz ",
            "ROSTER_SOFT_REFRESH_HOURS": "2.5",
            "ROSTER_STATS_CONCURRENCY": "4",
            "ROSTER_ENGINES": "chromium",
            "ROSTER_HEADLESS": "false",
            "ROSTER_WARM_CACHE": "yes",
            "PORT": "8080",
        })
        assert cfg.base_url == "https://mirror.example"
        assert cfg.priority_characters == ["Foo", "Bar", "Baz"]
        assert cfg.soft_refresh_hours == 2.5
        assert cfg.stats_concurrency == 4
        assert cfg.engines == ["chromium"]
        assert cfg.headless is False
        assert cfg.warm_cache_on_start is True
        assert cfg.port == 8080

    def test_blank_values_ignored(self):
        """Empty strings fall back to defaults."""
        cfg = EngineConfig.from_env({"ROSTER_STATS_CONCURRENCY": "  "})
        assert cfg.stats_concurrency == 1

    def test_invalid_value_rejected(self):
        """Unparseable numbers name the offending variable."""
        with pytest.raises(ValueError, match="ROSTER_NAVIGATION_TIMEOUT_MS"):
            EngineConfig.from_env({"ROSTER_NAVIGATION_TIMEOUT_MS": "soon"})


class TestFromCliArgs:
    """argparse overrides on top of the environment."""

    def test_overrides(self):
        """CLI flags win over environment values."""
        args = argparse.Namespace(
            concurrency=3, timeout=30, headed=True,
            storage_state="/tmp/state.json", host="127.0.0.1", port=9000,
        )
        cfg = EngineConfig.from_cli_args(args, environ={"ROSTER_STATS_CONCURRENCY": "2"})
        assert cfg.stats_concurrency == 3
        assert cfg.navigation_timeout_ms == 30000
        assert cfg.headless is False
        assert cfg.storage_state_path == "/tmp/state.json"
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 9000

    def test_missing_flags_keep_env(self):
        """Unset flags leave environment values in place."""
        args = argparse.Namespace(concurrency=None, timeout=None, headed=False)
        cfg = EngineConfig.from_cli_args(args, environ={"ROSTER_STATS_CONCURRENCY": "2"})
        assert cfg.stats_concurrency == 2
        assert cfg.navigation_timeout_ms == 45000
        assert cfg.headless is True
