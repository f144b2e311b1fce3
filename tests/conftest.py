"""Shared fakes for the engine tests."""

import pytest


class FakeClock:
    """Manually advanced wall clock (seconds since the epoch)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Async sleep stand-in that records requested delays and returns at once."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()
