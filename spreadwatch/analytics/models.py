"""
Analytics Output Types
Dataclasses for analytics results.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Tuple


class InvalidInput(ValueError):
    """Raised when series passed to an estimator break its contract"""


# =============================================================================
# REGRESSION OUTPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class RegressionResult:
    """
    Linear fit of y on x.

    y = intercept + slope * x + ε
    """
    slope: float
    intercept: float
    r_squared: float     # Goodness of fit


# =============================================================================
# STATIONARITY OUTPUT TYPES
# =============================================================================

CRITICAL_VALUES = {"1%": -3.43, "5%": -2.86, "10%": -2.57}


@dataclass(frozen=True)
class ADFResult:
    """
    ADF test result for stationarity.

    Purpose: Validate mean-reversion assumption
    """
    statistic: float
    p_value: float
    is_stationary: bool
    critical_values: Dict[str, float] = field(default_factory=lambda: dict(CRITICAL_VALUES))


@dataclass(frozen=True)
class HalfLifeResult:
    """
    Half-life of mean reversion.

    Lower half-life = faster mean reversion = better for trading
    """
    half_life: float
    lambda_coef: float   # Mean reversion speed
    is_mean_reverting: bool
    r_squared: float


def _finite_or_none(value: Optional[float]) -> Optional[float]:
    if value is None or math.isinf(value):
        return None
    return value


# =============================================================================
# LIVE SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class AnalyticsSnapshot:
    """
    Output of one recompute cycle.

    Never mutated: each cycle publishes a new instance.
    """
    hedge_ratio: float
    spread: Tuple[float, ...]
    z_score: Tuple[float, ...]
    correlation: float
    adf_statistic: Optional[float] = None
    adf_p_value: Optional[float] = None
    is_stationary: Optional[bool] = None
    half_life: Optional[float] = None
    symbols: Tuple[str, ...] = ()
    regression_method: str = "ols"
    computed_at: int = 0  # epoch ms

    def __post_init__(self):
        if len(self.spread) != len(self.z_score):
            raise InvalidInput(
                f"spread and z_score lengths differ: {len(self.spread)} != {len(self.z_score)}"
            )

    @property
    def sample_count(self) -> int:
        return len(self.spread)

    @property
    def last_z_score(self) -> Optional[float]:
        return self.z_score[-1] if self.z_score else None

    def to_dict(self, tail: int = None) -> dict:
        spread = list(self.spread[-tail:]) if tail else list(self.spread)
        z_score = list(self.z_score[-tail:]) if tail else list(self.z_score)
        # JSON has no infinity: an unbounded half-life or a perfect-fit ADF
        # statistic is reported as null
        half_life = _finite_or_none(self.half_life)
        adf_statistic = _finite_or_none(self.adf_statistic)
        return {
            "symbols": list(self.symbols),
            "regression_method": self.regression_method,
            "hedge_ratio": self.hedge_ratio,
            "correlation": self.correlation,
            "sample_count": self.sample_count,
            "spread": spread,
            "z_score": z_score,
            "adf_statistic": adf_statistic,
            "adf_p_value": self.adf_p_value,
            "is_stationary": self.is_stationary,
            "half_life": half_life,
            "computed_at": self.computed_at,
        }


# =============================================================================
# BACKTEST OUTPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class BacktestTrade:
    """One closed round trip on the spread."""
    entry_index: int
    exit_index: int
    entry_spread: float
    exit_spread: float
    pnl: float
    z_score_at_entry: float
    z_score_at_exit: float
    side: str = "short"  # "long" or "short" spread


@dataclass(frozen=True)
class BacktestResult:
    total_trades: int
    winning_trades: int
    losing_trades: int
    total_pnl: float
    sharpe_ratio: float
    max_drawdown: float  # Over the cumulative trade-PnL curve
    trades: List[BacktestTrade] = field(default_factory=list)

    @property
    def win_rate(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.winning_trades / self.total_trades

    def to_dict(self) -> dict:
        result = asdict(self)
        result["win_rate"] = self.win_rate
        return result
