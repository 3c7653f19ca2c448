"""
Tests for the mean-reversion backtest.
"""

import pytest

from spreadwatch.analytics.backtest import run_backtest
from spreadwatch.analytics.models import InvalidInput


class TestRunBacktest:
    def test_short_round_trip(self):
        spread = [0.0, 1.0, 5.0, 4.0, 3.0, 1.0]
        z = [0.0, 0.5, 2.5, 2.1, 1.0, -0.2]

        result = run_backtest(spread, z)

        assert result.total_trades == 1
        trade = result.trades[0]
        assert trade.side == "short"
        assert (trade.entry_index, trade.exit_index) == (2, 5)
        assert trade.pnl == pytest.approx(4.0)
        assert result.winning_trades == 1
        assert result.win_rate == 1.0

    def test_long_round_trip(self):
        spread = [0.0, -3.0, -2.0, 1.0]
        z = [0.0, -2.5, -1.0, 0.1]

        result = run_backtest(spread, z)

        assert result.total_trades == 1
        assert result.trades[0].side == "long"
        assert result.trades[0].exit_index == 3
        assert result.total_pnl == pytest.approx(4.0)

    def test_first_sample_never_enters(self):
        result = run_backtest([0.0, 1.0], [3.0, -0.5])
        assert result.total_trades == 0

    def test_open_position_is_not_counted(self):
        result = run_backtest([0.0, 5.0, 6.0], [0.0, 3.0, 2.5])

        assert result.total_trades == 0
        assert result.total_pnl == 0.0

    def test_summary_metrics(self):
        spread = [0.0, 5.0, 3.0, 1.0, 4.0, 2.0, 1.0]
        z = [0.0, 3.0, -1.0, 3.0, -1.0, 3.0, -1.0]

        result = run_backtest(spread, z)

        assert [t.pnl for t in result.trades] == pytest.approx([2.0, -3.0, 1.0])
        assert result.winning_trades == 2
        assert result.losing_trades == 1
        assert result.total_pnl == pytest.approx(0.0)
        assert result.sharpe_ratio == pytest.approx(0.0)
        assert result.max_drawdown == pytest.approx(3.0)

    def test_no_trades(self):
        result = run_backtest([1.0, 2.0, 3.0], [0.0, 0.1, 0.2])

        assert result.total_trades == 0
        assert result.sharpe_ratio == 0.0
        assert result.max_drawdown == 0.0
        assert result.win_rate == 0.0

    def test_length_mismatch(self):
        with pytest.raises(InvalidInput):
            run_backtest([1.0, 2.0], [0.0])

    def test_to_dict(self):
        result = run_backtest([0.0, 1.0, 5.0, 1.0], [0.0, 0.5, 2.5, -0.2])
        data = result.to_dict()

        assert data["total_trades"] == 1
        assert data["trades"][0]["side"] == "short"
        assert data["win_rate"] == 1.0
