"""
Tests for refresh_clock.py.
"""

from datetime import datetime, timezone

from rostercsv.refresh_clock import RefreshClock

NOW = 1_700_000_000.0  # 2023-11-14 22:13:20 UTC


class TestRefreshClock:
    """File-backed bulk refresh timestamp."""

    def test_never_refreshed(self, tmp_path):
        """Missing file → no timestamp, cooldown elapsed."""
        clock = RefreshClock(str(tmp_path / "last_refresh.txt"))
        assert clock.last() is None
        assert clock.minutes_since(NOW) is None
        assert clock.cooldown_elapsed(300, NOW)

    def test_mark_writes_utc_line(self, tmp_path):
        """mark() writes a single human-readable UTC timestamp."""
        path = tmp_path / "last_refresh.txt"
        RefreshClock(str(path)).mark(NOW)
        assert path.read_text(encoding="utf-8") == "2023-11-14 22:13:20\n"

    def test_last_parses_mark(self, tmp_path):
        """last() returns the marked instant as an aware datetime."""
        clock = RefreshClock(str(tmp_path / "last_refresh.txt"))
        clock.mark(NOW)
        assert clock.last() == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_cooldown(self, tmp_path):
        """Cooldown elapses exactly at the configured minutes."""
        clock = RefreshClock(str(tmp_path / "last_refresh.txt"))
        clock.mark(NOW)
        assert clock.minutes_since(NOW + 90) == 1.5
        assert not clock.cooldown_elapsed(300, NOW + 299 * 60)
        assert clock.cooldown_elapsed(300, NOW + 300 * 60)

    def test_unparseable_treated_as_never(self, tmp_path):
        """Garbage in the file counts as never refreshed."""
        path = tmp_path / "last_refresh.txt"
        path.write_text("yesterday-ish\n", encoding="utf-8")
        clock = RefreshClock(str(path))
        assert clock.last() is None
        assert clock.cooldown_elapsed(300, NOW)

    def test_hand_edited_file(self, tmp_path):
        """Operators can reset the clock by writing a timestamp by hand."""
        path = tmp_path / "last_refresh.txt"
        path.write_text("  2023-11-14 20:13:20  \n", encoding="utf-8")
        assert RefreshClock(str(path)).minutes_since(NOW) == 120
