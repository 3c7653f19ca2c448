"""
Scalar Kalman Filter
Recursive estimate of a slowly varying quantity from noisy measurements.

The filter holds no state of its own. Callers keep a KalmanState and thread
it through kalman_update:

    state = KalmanState(estimate=1.0)
    for ratio in ratios:
        state, estimate = kalman_update(state, ratio)
"""

from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple

import numpy as np

from .models import InvalidInput


@dataclass(frozen=True)
class KalmanState:
    estimate: float = 0.0           # x
    covariance: float = 1.0         # p
    process_noise: float = 0.001    # q
    measurement_noise: float = 0.1  # r


def kalman_update(state: KalmanState, measurement: float) -> Tuple[KalmanState, float]:
    """
    One predict/correct step.

    Predict:  p ← p + q
    Gain:     k = p / (p + r)
    Correct:  x ← x + k·(z − x),  p ← (1 − k)·p
    """
    p = state.covariance + state.process_noise
    gain = p / (p + state.measurement_noise)
    estimate = state.estimate + gain * (measurement - state.estimate)
    covariance = (1 - gain) * p

    new_state = replace(state, estimate=estimate, covariance=covariance)
    return new_state, estimate


def kalman_filter(
    measurements: Sequence[float],
    state: KalmanState = KalmanState()
) -> Tuple[List[float], KalmanState]:
    """
    Run the filter over a whole sequence.

    Returns:
        (estimate after each measurement, final state)
    """
    estimates = []
    for measurement in measurements:
        state, estimate = kalman_update(state, float(measurement))
        estimates.append(estimate)
    return estimates, state


def track_price_ratio(
    prices_a: Sequence[float],
    prices_b: Sequence[float],
    state: KalmanState = None
) -> Tuple[List[float], KalmanState]:
    """
    Smooth the price ratio A/B with the scalar filter.

    A ratio tracker, not a regression: each measurement is price_A / price_B.
    Pairs with a zero price in B are skipped.
    """
    a = np.asarray(prices_a, dtype=float)
    b = np.asarray(prices_b, dtype=float)
    if len(a) != len(b):
        raise InvalidInput(f"Price series lengths differ: {len(a)} != {len(b)}")

    valid = b != 0
    ratios = a[valid] / b[valid]

    if state is None:
        initial = float(ratios[0]) if len(ratios) else 1.0
        state = KalmanState(estimate=initial)

    return kalman_filter(ratios, state)
