"""
Export Formatting
Turns ticks, bars, snapshots and alert history into CSV / JSON text.

Formats:
    - CSV: Excel/pandas compatible
    - JSON: For programmatic access

The API layer wraps these strings in download responses.
"""

import io
import csv
import json
from datetime import datetime
from typing import Dict, Iterable, List

from spreadwatch.alerts.models import AlertEvent
from spreadwatch.analytics.models import AnalyticsSnapshot, BacktestResult
from spreadwatch.core.models import Tick, OHLCBar

TICK_COLUMNS = ["Symbol", "Timestamp", "Price", "Quantity"]
OHLC_COLUMNS = ["Symbol", "Timestamp", "Open", "High", "Low", "Close", "Volume"]
SPREAD_COLUMNS = ["Index", "Spread", "ZScore"]
ALERT_COLUMNS = ["Timestamp", "AlertId", "Type", "Condition", "Value", "Threshold", "Message"]


def export_filename(prefix: str, extension: str) -> str:
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{extension}"


def _write_rows(header: List[str], rows: Iterable[list]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return output.getvalue()


# =============================================================================
# Market Data
# =============================================================================

def ticks_to_csv(ticks: Iterable[Tick]) -> str:
    return _write_rows(
        TICK_COLUMNS,
        ([t.symbol, t.timestamp, t.price, t.quantity] for t in ticks)
    )


def ticks_to_json(ticks: Iterable[Tick]) -> str:
    return json.dumps([t.model_dump() for t in ticks], indent=2)


def ohlc_to_csv(bars: Dict[str, List[OHLCBar]]) -> str:
    """Bars grouped by symbol, one row per bar"""
    return _write_rows(
        OHLC_COLUMNS,
        (
            [symbol, b.timestamp, b.open, b.high, b.low, b.close, b.volume]
            for symbol, symbol_bars in bars.items()
            for b in symbol_bars
        )
    )


def ohlc_to_json(bars: Dict[str, List[OHLCBar]]) -> str:
    return json.dumps(
        {symbol: [b.model_dump() for b in symbol_bars] for symbol, symbol_bars in bars.items()},
        indent=2
    )


# =============================================================================
# Analytics
# =============================================================================

def analytics_to_csv(snapshot: AnalyticsSnapshot) -> str:
    """Headline metrics as Metric,Value rows"""
    rows = [
        ["Hedge Ratio", snapshot.hedge_ratio],
        ["Correlation", snapshot.correlation],
        ["ADF Statistic", "" if snapshot.adf_statistic is None else snapshot.adf_statistic],
        ["ADF P-Value", "" if snapshot.adf_p_value is None else snapshot.adf_p_value],
        ["Is Stationary", "" if snapshot.is_stationary is None else snapshot.is_stationary],
    ]
    return _write_rows(["Metric", "Value"], rows)


def analytics_to_json(snapshot: AnalyticsSnapshot) -> str:
    return json.dumps(snapshot.to_dict(), indent=2)


def spread_to_csv(snapshot: AnalyticsSnapshot) -> str:
    return _write_rows(
        SPREAD_COLUMNS,
        ([i, s, z] for i, (s, z) in enumerate(zip(snapshot.spread, snapshot.z_score)))
    )


def backtest_to_json(result: BacktestResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


# =============================================================================
# Alerts
# =============================================================================

def alerts_to_csv(events: Iterable[AlertEvent]) -> str:
    return _write_rows(
        ALERT_COLUMNS,
        (
            [e.timestamp, e.alert_id, e.type, e.condition, e.value, e.threshold, e.message]
            for e in events
        )
    )


def alerts_to_json(events: Iterable[AlertEvent]) -> str:
    return json.dumps([e.to_dict() for e in events], indent=2)
