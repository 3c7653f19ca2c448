"""
Regression Estimators
Hedge ratio estimation from two aligned price series.

    price_A = α + β * price_B + ε

Methods:
    - ols: closed-form ordinary least squares
    - huber: IRLS with Huber weights (down-weights large residuals)
    - theil_sen: median of pairwise slopes (robust to a minority of outliers)

All functions are PURE: arrays in, RegressionResult out.
"""

import logging
from typing import Callable, Dict, Sequence, Tuple

import numpy as np

from .models import InvalidInput, RegressionResult

logger = logging.getLogger(__name__)

HUBER_ITERATIONS = 10


def _validate(x: Sequence[float], y: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y) or len(x) == 0:
        raise InvalidInput(
            f"Regression needs two non-empty series of equal length, got {len(x)} and {len(y)}"
        )
    return x, y


def _is_constant(values: np.ndarray) -> bool:
    return bool(np.all(values == values[0]))


def _neutral_fit(y: np.ndarray, intercept: float) -> RegressionResult:
    # Constant x carries no information about the slope
    logger.warning("Independent series has zero variance, returning neutral fit")
    return RegressionResult(slope=0.0, intercept=float(intercept), r_squared=0.0)


def _r_squared(x: np.ndarray, y: np.ndarray, slope: float, intercept: float) -> float:
    ss_total = float(np.sum((y - y.mean()) ** 2))
    if ss_total == 0:
        return 0.0
    ss_residual = float(np.sum((y - (slope * x + intercept)) ** 2))
    return 1.0 - ss_residual / ss_total


def ols(x: Sequence[float], y: Sequence[float]) -> RegressionResult:
    """
    Ordinary least squares of y on x.

    slope = (nΣxy − ΣxΣy) / (nΣx² − (Σx)²)
    intercept = (Σy − slope·Σx) / n

    Raises:
        InvalidInput: lengths differ or either series is empty
    """
    x, y = _validate(x, y)
    n = len(x)

    if _is_constant(x):
        return _neutral_fit(y, y.mean())

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = np.dot(x, y)
    sum_xx = np.dot(x, x)

    denom = n * sum_xx - sum_x * sum_x
    if denom == 0:
        return _neutral_fit(y, y.mean())

    slope = float((n * sum_xy - sum_x * sum_y) / denom)
    intercept = float((sum_y - slope * sum_x) / n)

    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=_r_squared(x, y, slope, intercept)
    )


def huber_regression(
    x: Sequence[float],
    y: Sequence[float],
    delta: float = 1.35
) -> RegressionResult:
    """
    Huber M-estimator regression.

    Iteratively reweighted least squares started from the OLS fit.
    Runs exactly HUBER_ITERATIONS passes, so the result is deterministic.

    Weights use the raw residual:
        w = 1            if |r| ≤ delta
        w = delta / |r|  otherwise

    Args:
        x: Independent series
        y: Dependent series
        delta: Residual size where down-weighting starts
    """
    x, y = _validate(x, y)
    if _is_constant(x):
        return _neutral_fit(y, y.mean())

    initial = ols(x, y)
    slope, intercept = initial.slope, initial.intercept

    for _ in range(HUBER_ITERATIONS):
        residuals = y - (slope * x + intercept)
        abs_res = np.abs(residuals)
        weights = np.where(abs_res <= delta, 1.0, delta / np.maximum(abs_res, delta))

        # Weighted least squares
        w_sum = np.sum(weights)
        wx_sum = np.sum(weights * x)
        wy_sum = np.sum(weights * y)
        wxx_sum = np.sum(weights * x * x)
        wxy_sum = np.sum(weights * x * y)

        denom = w_sum * wxx_sum - wx_sum * wx_sum
        if denom == 0:
            break

        slope = float((w_sum * wxy_sum - wx_sum * wy_sum) / denom)
        intercept = float((wy_sum - slope * wx_sum) / w_sum)

    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=_r_squared(x, y, slope, intercept)
    )


def theil_sen_regression(x: Sequence[float], y: Sequence[float]) -> RegressionResult:
    """
    Theil-Sen estimator: median of all pairwise slopes.

    Very robust to outliers (breakdown point = 29%).
    Uses every pair i < j with x_j ≠ x_i, O(n²) in memory and time.
    """
    x, y = _validate(x, y)

    i, j = np.triu_indices(len(x), k=1)
    dx = x[j] - x[i]
    valid = dx != 0

    if not np.any(valid):
        return _neutral_fit(y, np.median(y))

    slopes = (y[j] - y[i])[valid] / dx[valid]
    slope = float(np.median(slopes))
    intercept = float(np.median(y - slope * x))

    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=_r_squared(x, y, slope, intercept)
    )


REGRESSIONS: Dict[str, Callable[[Sequence[float], Sequence[float]], RegressionResult]] = {
    "ols": ols,
    "huber": huber_regression,
    "theil-sen": theil_sen_regression,
}
