"""
Analytics Module
Stat-arb analytics for a single pair of price series.

Structure:
    analytics/
    ├── models.py        → Output types (dataclasses)
    ├── regression.py    → OLS / Huber / Theil-Sen hedge ratios
    ├── kalman.py        → Scalar Kalman filter (pure state updates)
    ├── series.py        → Spread, rolling z-score, correlation
    ├── stationarity.py  → ADF test, half-life
    └── backtest.py      → Mean-reversion simulator

Usage:
    from spreadwatch.analytics import regression, series, stationarity

    fit = regression.ols(prices_b, prices_a)
    spread = series.spread(prices_a, prices_b, fit.slope)
    z = series.rolling_z_scores(spread, window=20)
    adf = stationarity.adf_test(spread)

Design Principles:
    ✓ ALL functions are PURE (inputs → computation → outputs)
    ✓ NO database access
    ✓ NO state management
    ✓ NO WebSocket handling
"""

from . import regression
from . import kalman
from . import series
from . import stationarity
from . import backtest

from .models import (
    InvalidInput,
    RegressionResult,
    ADFResult,
    HalfLifeResult,
    AnalyticsSnapshot,
    BacktestTrade,
    BacktestResult,
)
from .kalman import KalmanState, kalman_update

__all__ = [
    # Modules
    "regression",
    "kalman",
    "series",
    "stationarity",
    "backtest",
    # Types
    "InvalidInput",
    "RegressionResult",
    "ADFResult",
    "HalfLifeResult",
    "AnalyticsSnapshot",
    "BacktestTrade",
    "BacktestResult",
    "KalmanState",
    "kalman_update",
]
