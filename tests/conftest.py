"""
Pytest configuration and shared fixtures for SpreadWatch tests.
"""

import numpy as np
import pytest

from spreadwatch.config import Settings
from spreadwatch.core.models import Tick
from spreadwatch.core.orchestrator import RecomputeOrchestrator

START_MS = 1_700_000_000_000


class FakeTickSource:
    """In-process tick source; tests push ticks with emit()."""

    def __init__(self):
        self.callbacks = []
        self.connected = []
        self.disconnects = 0

    def subscribe(self, callback):
        self.callbacks.append(callback)

        def unsubscribe():
            if callback in self.callbacks:
                self.callbacks.remove(callback)

        return unsubscribe

    def connect(self, symbols):
        self.connected.append(list(symbols))

    def disconnect(self):
        self.disconnects += 1

    def emit(self, tick):
        for callback in list(self.callbacks):
            callback(tick)


class MemoryStore:
    """Tick store kept in lists; set fail=True to make every write raise."""

    def __init__(self):
        self.ticks = []
        self.bars = []
        self.cleared = 0
        self.fail = False

    def append_tick(self, tick):
        if self.fail:
            raise RuntimeError("store unavailable")
        self.ticks.append(tick)

    def append_ohlc_batch(self, bars):
        if self.fail:
            raise RuntimeError("store unavailable")
        self.bars.extend(bars)
        return len(bars)

    def clear_all(self):
        if self.fail:
            raise RuntimeError("store unavailable")
        self.ticks.clear()
        self.bars.clear()
        self.cleared += 1


@pytest.fixture
def make_tick():
    """Factory for ticks with sensible defaults."""
    def _make(symbol="BTCUSDT", price=100.0, timestamp=START_MS, quantity=1.0):
        return Tick(symbol=symbol, price=price, timestamp=timestamp, quantity=quantity)
    return _make


@pytest.fixture
def pair_prices():
    """Factory for a cointegrated pair: A = 2·B + 5 + noise."""
    def _make(n=60, seed=7):
        rng = np.random.default_rng(seed)
        b = 100 + 10 * np.sin(np.linspace(0, 6 * np.pi, n)) + rng.normal(0, 0.2, n)
        a = 2 * b + 5 + rng.normal(0, 0.2, n)
        return a, b
    return _make


@pytest.fixture
def settings():
    return Settings(auto_start=False, recompute_interval_ms=10)


@pytest.fixture
def source():
    return FakeTickSource()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def orchestrator(settings, source, store):
    orch = RecomputeOrchestrator(settings, source=source, store=store)
    yield orch
    orch.close()


@pytest.fixture
def feed_pair(source, make_tick):
    """Push two aligned price series through the fake source."""
    def _feed(prices_a, prices_b, symbols=("BTCUSDT", "ETHUSDT")):
        for i, (a, b) in enumerate(zip(prices_a, prices_b)):
            ts = START_MS + i * 1000
            source.emit(make_tick(symbols[0], float(a), ts))
            source.emit(make_tick(symbols[1], float(b), ts))
    return _feed
