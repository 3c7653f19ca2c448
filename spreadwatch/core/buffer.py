"""
In-Memory Buffers
Fast, bounded, symbol-keyed storage for real-time access.

Purpose:
- Analytics need fast access
- Dashboards need recent data
- No disk I/O allowed here

This is READ-OPTIMIZED, NOT DURABLE.
"""

import threading
from collections import deque
from typing import Dict, List, Optional

from .models import Tick, OHLCBar


# =============================================================================
# Price Buffer (Ticks)
# =============================================================================

class PriceBuffer:
    """
    In-memory buffer for live tick data.

    - Per-symbol deques with automatic FIFO eviction
    - O(1) append, O(1) latest access
    - Writers run on the feed thread, readers on the event loop.
      The lock only guards an append or a copy, never a computation.

    Usage:
        buffer = PriceBuffer(capacity=1000)
        buffer.append(tick)
        recent = buffer.get("BTCUSDT", limit=100)
    """

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._data: Dict[str, deque] = {}
        self._lock = threading.Lock()
        self._count: int = 0

    def append(self, tick: Tick) -> None:
        """Add single tick, evicting the oldest one at capacity"""
        with self._lock:
            ticks = self._data.get(tick.symbol)
            if ticks is None:
                ticks = self._data[tick.symbol] = deque(maxlen=self.capacity)
            ticks.append(tick)
            self._count += 1

    def extend(self, ticks: List[Tick]) -> int:
        """Add multiple ticks. Returns count added."""
        for tick in ticks:
            self.append(tick)
        return len(ticks)

    def get(self, symbol: str, limit: int = None) -> List[Tick]:
        """Get ticks for symbol (most recent last)"""
        symbol = symbol.upper()
        with self._lock:
            if symbol not in self._data:
                return []
            data = list(self._data[symbol])
        if limit:
            return data[-limit:]
        return data

    def get_latest(self, symbol: str) -> Optional[Tick]:
        """Get most recent tick"""
        symbol = symbol.upper()
        with self._lock:
            ticks = self._data.get(symbol)
            if not ticks:
                return None
            return ticks[-1]

    def snapshot(self) -> Dict[str, List[Tick]]:
        """Copy of every symbol's ticks, taken under one lock"""
        with self._lock:
            return {sym: list(ticks) for sym, ticks in self._data.items()}

    def symbols(self) -> List[str]:
        """List all symbols in buffer"""
        with self._lock:
            return list(self._data.keys())

    def count(self, symbol: str = None) -> int:
        """Current tick count for a symbol, or total ticks ever appended"""
        with self._lock:
            if symbol:
                return len(self._data.get(symbol.upper(), ()))
            return self._count

    def clear(self, symbol: str = None) -> None:
        """Clear buffer"""
        with self._lock:
            if symbol:
                self._data.pop(symbol.upper(), None)
            else:
                self._data.clear()
                self._count = 0

    def stats(self) -> dict:
        """Buffer statistics"""
        with self._lock:
            return {
                "total_ticks": self._count,
                "capacity": self.capacity,
                "symbols": len(self._data),
                "per_symbol": {sym: len(d) for sym, d in self._data.items()}
            }


# =============================================================================
# OHLC Buffer (Bars)
# =============================================================================

class OHLCBuffer:
    """
    In-memory buffer for uploaded OHLC bars.

    Structure: symbol → deque[OHLCBar]

    Usage:
        buffer = OHLCBuffer(maxlen=1000)
        buffer.append(bar)
        bars = buffer.get("BTCUSDT", limit=100)
    """

    def __init__(self, maxlen: int = 1000):
        self.maxlen = maxlen
        self._data: Dict[str, deque] = {}

    def append(self, bar: OHLCBar) -> None:
        """Add or update a bar"""
        bars = self._data.setdefault(bar.symbol, deque(maxlen=self.maxlen))

        # Update last bar if same timestamp, else append
        if bars and bars[-1].timestamp == bar.timestamp:
            bars[-1] = bar
        else:
            bars.append(bar)

    def extend(self, bars: List[OHLCBar]) -> int:
        """Add multiple bars"""
        for bar in bars:
            self.append(bar)
        return len(bars)

    def get(self, symbol: str, limit: int = None) -> List[OHLCBar]:
        """Get bars for symbol"""
        symbol = symbol.upper()
        if symbol not in self._data:
            return []

        data = list(self._data[symbol])
        if limit:
            return data[-limit:]
        return data

    def symbols(self) -> List[str]:
        """List all symbols"""
        return list(self._data.keys())

    def clear(self) -> None:
        self._data.clear()

    def stats(self) -> dict:
        """Buffer statistics"""
        return {symbol: len(bars) for symbol, bars in self._data.items()}
