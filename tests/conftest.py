"""Shared fixtures."""

import pytest


class FakeClock:
    """Manually advanced millisecond clock for rate limiter tests."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()
