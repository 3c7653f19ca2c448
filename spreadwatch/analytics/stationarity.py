"""
Stationarity Diagnostics
Checks that the spread actually mean-reverts.

Why not every tick:
    - Requires sufficient data
    - Not meaningful on a handful of samples

The ADF here is a single-lag Dickey-Fuller regression with fixed critical
values. Its p-value is a two-valued proxy (0.01 / 0.1), not a distributional
estimate.
"""

import math
from typing import Sequence

import numpy as np
from scipy import stats

from .models import ADFResult, CRITICAL_VALUES, HalfLifeResult
from .regression import ols

STATIONARY_P_VALUE = 0.01
NON_STATIONARY_P_VALUE = 0.1


def _neutral_adf() -> ADFResult:
    return ADFResult(statistic=0.0, p_value=1.0, is_stationary=False)


def adf_test(values: Sequence[float], max_lag: int = 1) -> ADFResult:
    """
    Augmented Dickey-Fuller test for stationarity.

    Regresses first differences on the lagged level:
        Δy_t = α + γ·y_{t-1} + ε
    and reports t = γ / SE(γ). The series is stationary iff t < -2.57
    (10% critical value).

    Args:
        values: Spread or price series
        max_lag: Lag order (only the minimum-length check depends on it)

    Returns:
        ADFResult with statistic, p-value proxy, stationarity flag
    """
    series = np.asarray(values, dtype=float)

    if len(series) < max_lag + 2:
        return _neutral_adf()

    diffs = np.diff(series)
    lagged = series[:-1]
    n = len(diffs)

    ss_lagged = float(np.sum((lagged - lagged.mean()) ** 2))
    if n <= 2 or ss_lagged == 0:
        return _neutral_adf()

    fit = ols(lagged, diffs)
    residuals = diffs - (fit.slope * lagged + fit.intercept)
    variance = float(np.sum(residuals ** 2)) / (n - 2)
    std_error = math.sqrt(variance / ss_lagged)

    if std_error == 0:
        # Perfect fit: the sign of γ decides
        statistic = math.copysign(math.inf, fit.slope) if fit.slope else 0.0
    else:
        statistic = fit.slope / std_error

    is_stationary = statistic < CRITICAL_VALUES["10%"]

    return ADFResult(
        statistic=statistic,
        p_value=STATIONARY_P_VALUE if is_stationary else NON_STATIONARY_P_VALUE,
        is_stationary=is_stationary,
    )


def half_life(values: Sequence[float]) -> HalfLifeResult:
    """
    Calculate half-life of mean reversion.

    Fits Δy_t = λ·y_{t-1} + c; half-life = -ln(2) / λ periods.

    Args:
        values: Spread series

    Returns:
        HalfLifeResult with half_life in periods (inf when not reverting)
    """
    series = np.asarray(values, dtype=float)
    series = series[~np.isnan(series)]

    if len(series) < 10:
        return HalfLifeResult(
            half_life=float('inf'),
            lambda_coef=0.0,
            is_mean_reverting=False,
            r_squared=0.0
        )

    lagged = series[:-1]
    delta = np.diff(series)

    if np.all(lagged == lagged[0]):
        return HalfLifeResult(
            half_life=float('inf'),
            lambda_coef=0.0,
            is_mean_reverting=False,
            r_squared=0.0
        )

    slope, _, r_value, _, _ = stats.linregress(lagged, delta)

    if slope >= 0:
        return HalfLifeResult(
            half_life=float('inf'),
            lambda_coef=float(slope),
            is_mean_reverting=False,
            r_squared=float(r_value ** 2)
        )

    return HalfLifeResult(
        half_life=float(-np.log(2) / slope),
        lambda_coef=float(slope),
        is_mean_reverting=True,
        r_squared=float(r_value ** 2)
    )
