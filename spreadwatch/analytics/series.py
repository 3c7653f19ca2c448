"""
Series Analytics
Derived series recomputed on every cycle.

Update: Every recompute cycle (500ms)
Use: Monitoring, alerts, dashboards

Degenerate variance never raises: z-scores and correlations fall back to 0.
"""

from typing import Sequence

import numpy as np
import pandas as pd

from .models import InvalidInput


def spread(
    prices_a: Sequence[float],
    prices_b: Sequence[float],
    hedge_ratio: float
) -> np.ndarray:
    """
    Spread of the pair.

    Formula:
        spread = price_A - β * price_B
    """
    a = np.asarray(prices_a, dtype=float)
    b = np.asarray(prices_b, dtype=float)
    if len(a) != len(b):
        raise InvalidInput(f"Price series lengths differ: {len(a)} != {len(b)}")
    return a - hedge_ratio * b


def rolling_z_scores(values: Sequence[float], window: int = 20) -> np.ndarray:
    """
    Compute rolling z-scores for an array.

    Each point uses the trailing min(window, i + 1) values, so the window
    expands until it is full. Standard deviation is the population one.
    z = 0 wherever the window has no variance.

    Args:
        values: Input array
        window: Rolling window (≥ 1)

    Returns:
        Array of z-scores, same length as values
    """
    if window < 1:
        raise InvalidInput(f"window must be >= 1, got {window}")

    series = pd.Series(np.asarray(values, dtype=float))
    if series.empty:
        return np.array([], dtype=float)

    rolling = series.rolling(window=window, min_periods=1)
    rolling_mean = rolling.mean()
    rolling_std = rolling.std(ddof=0)
    flat = rolling.max() == rolling.min()

    z_scores = (series - rolling_mean) / rolling_std
    z_scores = z_scores.where(~flat & (rolling_std > 0), 0.0)
    return z_scores.fillna(0.0).to_numpy()


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation via sums of products.

    Returns 0 for empty or mismatched input and for zero-variance series.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y) or len(x) == 0:
        return 0.0
    if np.all(x == x[0]) or np.all(y == y[0]):
        return 0.0

    n = len(x)
    sum_x = x.sum()
    sum_y = y.sum()

    numerator = n * np.dot(x, y) - sum_x * sum_y
    var_x = n * np.dot(x, x) - sum_x * sum_x
    var_y = n * np.dot(y, y) - sum_y * sum_y

    denominator = np.sqrt(var_x * var_y) if var_x > 0 and var_y > 0 else 0.0
    if denominator == 0:
        return 0.0
    return float(numerator / denominator)


def rolling_correlation(
    x: Sequence[float],
    y: Sequence[float],
    window: int = 20
) -> np.ndarray:
    """
    Correlation over each trailing window of fixed size.

    Purpose: Detect correlation breakdown

    Returns:
        len(x) - window + 1 values, the first one for index window - 1
    """
    if window < 1:
        raise InvalidInput(f"window must be >= 1, got {window}")

    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    return np.array([
        correlation(x[i - window + 1:i + 1], y[i - window + 1:i + 1])
        for i in range(window - 1, len(x))
    ])
