"""
Core Module
Ingestion, buffering and the recompute cycle.

Exports:
    Models: Tick, OHLCBar, IngestionResult
    Buffer: PriceBuffer, OHLCBuffer
    Resampler: aggregate_ticks, timeframe_to_ms
    Interfaces: TickSource, TickStore
    Converters: to_tick, to_ohlc_bar

The orchestrator lives in core.orchestrator and is imported from there;
it depends on alerts and analytics, which themselves import core.models.
"""

from .models import (
    Tick,
    OHLCBar,
    IngestionResult,
    to_tick,
    to_ohlc_bar,
)

from .buffer import PriceBuffer, OHLCBuffer
from .resampler import TIMEFRAME_MS, aggregate_ticks, timeframe_to_ms
from .interfaces import TickSource, TickStore, TickCallback, Unsubscribe

__all__ = [
    # Models
    "Tick",
    "OHLCBar",
    "IngestionResult",
    "to_tick",
    "to_ohlc_bar",
    # Buffer
    "PriceBuffer",
    "OHLCBuffer",
    # Resampler
    "TIMEFRAME_MS",
    "aggregate_ticks",
    "timeframe_to_ms",
    # Interfaces
    "TickSource",
    "TickStore",
    "TickCallback",
    "Unsubscribe",
]
