"""
Mean-Reversion Backtest
Replays a z-score entry/exit rule over pre-computed series.

Strategy:
    - SHORT spread when z > entry_threshold (spread too high)
    - LONG spread when z < -entry_threshold (spread too low)
    - EXIT short when z < exit_threshold
    - EXIT long when z > -exit_threshold

One position at a time. A position still open after the last sample is
not counted as a trade.
"""

from enum import Enum
from typing import List, Sequence

import numpy as np

from .models import BacktestResult, BacktestTrade, InvalidInput


class Position(str, Enum):
    FLAT = "flat"
    LONG = "long"
    SHORT = "short"


def run_backtest(
    spread: Sequence[float],
    z_scores: Sequence[float],
    entry_threshold: float = 2.0,
    exit_threshold: float = 0.0
) -> BacktestResult:
    """
    Simulate the spread strategy.

    Index 0 is skipped: a rolling z-score is always 0 on its first sample.

    Args:
        spread: Spread values
        z_scores: Z-scores aligned index-for-index with spread
        entry_threshold: |z| needed to open a position
        exit_threshold: Z level that closes it

    Returns:
        BacktestResult with per-trade detail and aggregate metrics
    """
    spread = np.asarray(spread, dtype=float)
    z_scores = np.asarray(z_scores, dtype=float)
    if len(spread) != len(z_scores):
        raise InvalidInput(
            f"spread and z_scores lengths differ: {len(spread)} != {len(z_scores)}"
        )

    trades: List[BacktestTrade] = []
    position = Position.FLAT
    entry_index = 0

    for i in range(1, len(z_scores)):
        z = z_scores[i]

        if position is Position.FLAT:
            if z > entry_threshold:
                position = Position.SHORT
                entry_index = i
            elif z < -entry_threshold:
                position = Position.LONG
                entry_index = i
            continue

        if position is Position.SHORT and z < exit_threshold:
            pnl = spread[entry_index] - spread[i]
        elif position is Position.LONG and z > -exit_threshold:
            pnl = spread[i] - spread[entry_index]
        else:
            continue

        trades.append(BacktestTrade(
            entry_index=entry_index,
            exit_index=i,
            entry_spread=float(spread[entry_index]),
            exit_spread=float(spread[i]),
            pnl=float(pnl),
            z_score_at_entry=float(z_scores[entry_index]),
            z_score_at_exit=float(z),
            side=position.value,
        ))
        position = Position.FLAT

    return _summarize(trades)


def _summarize(trades: List[BacktestTrade]) -> BacktestResult:
    pnl = np.array([t.pnl for t in trades], dtype=float)

    sharpe = 0.0
    if len(pnl) > 0:
        std = float(np.std(pnl))
        if std > 0:
            sharpe = float(np.mean(pnl)) / std

    # Drawdown over the cumulative trade-PnL curve, peak starting at 0
    max_drawdown = 0.0
    if len(pnl) > 0:
        cumulative = np.cumsum(pnl)
        running_peak = np.maximum.accumulate(np.maximum(cumulative, 0.0))
        max_drawdown = float(np.max(running_peak - cumulative))

    return BacktestResult(
        total_trades=len(trades),
        winning_trades=int(np.sum(pnl > 0)),
        losing_trades=int(np.sum(pnl <= 0)),
        total_pnl=float(np.sum(pnl)),
        sharpe_ratio=sharpe,
        max_drawdown=max_drawdown,
        trades=trades,
    )
