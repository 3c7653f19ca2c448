"""
OHLC Resampler
Converts buffered ticks to OHLC bars on demand.

Flow:
1. Find each tick's time bucket
2. First tick in a bucket opens the bar
3. Later ticks update high/low/close/volume
4. Emit bars ordered by bucket time
"""

from typing import Dict, Iterable, List

from .models import Tick, OHLCBar


# =============================================================================
# Timeframe Configuration
# =============================================================================

TIMEFRAME_MS = {
    "1s": 1_000,
    "5s": 5_000,
    "10s": 10_000,
    "30s": 30_000,
    "1m": 60_000,
    "5m": 300_000,
    "15m": 900_000,
    "30m": 1_800_000,
    "1h": 3_600_000,
    "4h": 14_400_000,
    "1d": 86_400_000,
}


def timeframe_to_ms(timeframe: str) -> int:
    """Interval length for a timeframe label (defaults to 1m)"""
    return TIMEFRAME_MS.get(timeframe, TIMEFRAME_MS["1m"])


def bucket_start(timestamp: int, interval: int) -> int:
    """
    Bar open time for a given timestamp.

    Example (1m bars):
        10:00:23 → 10:00:00
        10:01:59 → 10:01:00
    """
    return (timestamp // interval) * interval


# =============================================================================
# Batch Aggregation
# =============================================================================

def aggregate_ticks(ticks: Iterable[Tick], interval: int) -> List[OHLCBar]:
    """
    Bucket ticks into fixed-width OHLC bars.

    Ticks are applied in the order given, so `close` is the last tick seen
    for a bucket rather than the latest timestamp.

    Args:
        ticks: Ticks of a single symbol
        interval: Bucket width in milliseconds

    Returns:
        Bars sorted ascending by bucket timestamp
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")

    bars: Dict[int, OHLCBar] = {}

    for tick in ticks:
        bucket = bucket_start(tick.timestamp, interval)
        bar = bars.get(bucket)

        if bar is None:
            bars[bucket] = OHLCBar(
                timestamp=bucket,
                symbol=tick.symbol,
                open=tick.price,
                high=tick.price,
                low=tick.price,
                close=tick.price,
                volume=tick.quantity,
            )
        else:
            bar.update(tick.price, tick.quantity)

    return [bars[ts] for ts in sorted(bars)]
