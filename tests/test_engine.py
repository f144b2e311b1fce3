"""
Tests for engine.py (RosterEngine wiring) with a fake session and fetcher.
"""

import asyncio

import pytest

from rostercsv.engine import RosterEngine
from rostercsv.errors import EmptyRosterError
from rostercsv.run_config import EngineConfig

BASE = "https://uwuowo.mathi.moe"


class FakeSession:
    def __init__(self):
        self.acquired = 0
        self.persisted = 0
        self.closed = 0

    async def acquire(self):
        self.acquired += 1

    async def persist(self):
        self.persisted += 1
        return True

    async def shutdown(self):
        self.closed += 1


class FakeFetcher:
    """Every roster lists its owner plus 'Alt'; every character page has full stats."""

    def __init__(self, engine_ref):
        self.engine_ref = engine_ref
        self.urls = []
        self.gate_busy = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, url):
        self.urls.append(url)
        self.gate_busy.append(self.engine_ref[0].gate.busy)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def fetch_html(self, url, wait_ms=None):
        await self._enter(url)
        owner = url.rstrip("/").split("/")[-2]
        if owner == "Nobody":
            return "<html></html>"
        return (
            f'<a href="/character/NAE/{owner}">{owner}</a>'
            '<a href="/character/NAE/Alt">Alt</a>'
        )

    async def fetch_text(self, url, wait_ms=None):
        await self._enter(url)
        return "Class: bard\nItem Level 1600.00"


@pytest.fixture
def make_engine(tmp_path, fake_clock, sleep_recorder):
    def _make(**overrides):
        config = EngineConfig(
            base_url=BASE,
            refresh_clock_path=str(tmp_path / "last_refresh.txt"),
            **overrides,
        )
        ref = []
        fetcher = FakeFetcher(ref)
        engine = RosterEngine(
            config,
            session=FakeSession(),
            fetcher=fetcher,
            clock=fake_clock,
            sleep=sleep_recorder,
        )
        ref.append(engine)
        return engine
    return _make


async def _drain(exclude=("sweep",)):
    """Wait for every other task except the long-running sweep loop."""
    current = asyncio.current_task()
    pending = [
        t for t in asyncio.all_tasks()
        if t is not current and t.get_name() not in exclude
    ]
    await asyncio.gather(*pending, return_exceptions=True)


class TestGetCsv:
    """get_csv_for_roster through the whole stack."""

    def test_returns_csv(self, make_engine):
        """Roster is scraped, serialized and session state persisted."""
        engine = make_engine()
        csv_text = asyncio.run(engine.get_csv_for_roster("NAE", "Foo"))
        assert csv_text.splitlines() == [
            "Name,Class,iLvl,CombatPower",
            "Foo,Bard,1600.00,",
            "Alt,Bard,1600.00,",
        ]
        assert engine.session.persisted == 1

    def test_blank_region_uses_default(self, make_engine):
        """Empty region falls back to the configured default."""
        engine = make_engine(default_region="EUC")
        asyncio.run(engine.get_csv_for_roster("  ", "Foo"))
        assert engine.fetcher.urls[0] == f"{BASE}/character/EUC/Foo/roster"

    def test_empty_roster_surfaces(self, make_engine):
        """Zero characters reaches the caller as EmptyRosterError."""
        engine = make_engine()
        with pytest.raises(EmptyRosterError):
            asyncio.run(engine.get_csv_for_roster("NAE", "Nobody"))

    def test_scrapes_run_through_the_gate(self, make_engine):
        """Concurrent requests never drive the browser at the same time."""
        engine = make_engine()

        async def scenario():
            return await asyncio.gather(
                engine.get_csv_for_roster("NAE", "Foo"),
                engine.get_csv_for_roster("NAE", "Bar"),
                engine.get_csv_for_roster("NAE", "Baz"),
            )

        results = asyncio.run(scenario())
        assert len(results) == 3
        assert all(engine.fetcher.gate_busy)
        assert engine.fetcher.max_in_flight == 1


class TestBulkRefresh:
    """Externally triggered bulk refresh."""

    def test_trigger_runs_in_background(self, make_engine):
        """trigger → True, refresh populates the cache and advances the clock."""
        engine = make_engine(priority_characters=["Foo"])

        async def scenario():
            started = engine.trigger_bulk_refresh()
            again = engine.trigger_bulk_refresh()
            await _drain()
            return started, again

        assert asyncio.run(scenario()) == (True, False)
        assert engine.cache.store.get("NAE", "Foo").data is not None
        assert engine.cache.refresh_clock.last() is not None
        assert engine.bulk_refresh_due() is False

    def test_trigger_during_cooldown(self, make_engine):
        """Inside the cooldown nothing is started."""
        engine = make_engine(priority_characters=["Foo"])
        assert asyncio.run(engine.bulk_refresh()) is True

        async def scenario():
            return engine.trigger_bulk_refresh()

        assert asyncio.run(scenario()) is False


class TestLifecycle:
    """start / shutdown."""

    def test_start_and_shutdown(self, make_engine):
        """start acquires the session; shutdown cancels the sweep and closes it."""
        engine = make_engine()

        async def scenario():
            await engine.start()
            await engine.start()
            names = {t.get_name() for t in asyncio.all_tasks()}
            await engine.shutdown()
            remaining = {t.get_name() for t in asyncio.all_tasks()} - {asyncio.current_task().get_name()}
            return names, remaining

        names, remaining = asyncio.run(scenario())
        assert "sweep" in names
        assert "sweep" not in remaining
        assert engine.session.acquired == 1
        assert engine.session.closed == 1

    def test_warm_up_does_not_advance_clock(self, make_engine):
        """Startup warm-up fills the cache but leaves the cooldown open."""
        engine = make_engine(priority_characters=["Foo"], warm_cache_on_start=True)

        async def scenario():
            await engine.start()
            await _drain()
            await engine.shutdown()

        asyncio.run(scenario())
        assert engine.cache.store.get("NAE", "Foo").data is not None
        assert engine.cache.refresh_clock.last() is None
