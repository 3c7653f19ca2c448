"""
Tests for the ADF test and half-life.
"""

import math

import numpy as np
import pytest

from spreadwatch.analytics.models import CRITICAL_VALUES
from spreadwatch.analytics.stationarity import adf_test, half_life


@pytest.fixture
def white_noise():
    return np.random.default_rng(42).normal(0, 1, 300)


@pytest.fixture
def ar1_series():
    rng = np.random.default_rng(11)
    values = np.zeros(500)
    for i in range(1, 500):
        values[i] = 0.5 * values[i - 1] + rng.normal()
    return values


class TestADF:
    def test_white_noise_is_stationary(self, white_noise):
        result = adf_test(white_noise)

        assert result.is_stationary
        assert result.statistic < CRITICAL_VALUES["10%"]
        assert result.p_value == 0.01

    def test_explosive_series_is_not_stationary(self):
        result = adf_test(np.arange(50, dtype=float) ** 2)

        assert not result.is_stationary
        assert result.statistic > 0
        assert result.p_value == 0.1

    def test_random_walk_is_not_stationary(self):
        # 10% test: a unit-root walk is rejected only about one time in ten
        results = [
            adf_test(np.cumsum(np.random.default_rng(seed).normal(0, 1, 300)))
            for seed in range(20)
        ]

        non_stationary = [r for r in results if not r.is_stationary]
        assert len(non_stationary) >= 15
        assert all(r.p_value == 0.1 for r in non_stationary)

    def test_short_series_is_neutral(self):
        result = adf_test([1.0, 2.0])

        assert result.statistic == 0.0
        assert result.p_value == 1.0
        assert not result.is_stationary

    def test_constant_series_is_neutral(self):
        result = adf_test([4.0] * 40)

        assert result.statistic == 0.0
        assert not result.is_stationary

    def test_critical_values_reported(self, white_noise):
        assert adf_test(white_noise).critical_values == CRITICAL_VALUES


class TestHalfLife:
    def test_mean_reverting(self, ar1_series):
        result = half_life(ar1_series)

        assert result.is_mean_reverting
        assert result.lambda_coef < 0
        # λ ≈ φ - 1 = -0.5 → ln 2 / 0.5 ≈ 1.39
        assert 0.8 < result.half_life < 2.5

    def test_trending_is_infinite(self):
        result = half_life(np.arange(50, dtype=float) ** 2)

        assert not result.is_mean_reverting
        assert math.isinf(result.half_life)

    def test_short_series_is_infinite(self):
        assert math.isinf(half_life([1.0, 2.0, 1.0]).half_life)
