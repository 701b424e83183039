"""Shared fixtures for the terrain engine tests."""

import pytest

from py_gridmap.core.grid import MapSize, create_empty


class FixedRandom:
    """Stand-in for AleaPRNG that always returns the same draw."""

    def __init__(self, value: float):
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def small_grid():
    """5x5 rectangular grid of field cells at height 1."""
    return create_empty(MapSize(5, 5))


@pytest.fixture
def hex_grid():
    """Hex grid of radius 2 (19 cells)."""
    return create_empty(2)


@pytest.fixture
def very_large_grid():
    """250x200 grid, above the very-large threshold."""
    return create_empty(MapSize(250, 200))


@pytest.fixture
def clock():
    return FakeClock()
