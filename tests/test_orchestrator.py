"""
Tests for the recompute cycle and its control surface.
"""

import asyncio

import numpy as np
import pytest

from spreadwatch.alerts import Alert, AlertCondition, AlertType
from spreadwatch.analytics.models import InvalidInput
from spreadwatch.config import Settings
from spreadwatch.core.models import OHLCBar
from spreadwatch.core.orchestrator import RecomputeOrchestrator


class TestRecompute:
    def test_waits_for_min_samples(self, orchestrator, feed_pair, pair_prices):
        a, b = pair_prices(20)

        feed_pair(a[:19], b[:19])
        assert orchestrator.recompute() is None
        assert orchestrator.snapshot is None

        feed_pair(a[19:], b[19:])
        snapshot = orchestrator.recompute()
        assert snapshot is not None
        assert snapshot.sample_count == 20
        assert orchestrator.snapshot is snapshot

    def test_needs_exactly_two_symbols(self, source, store, feed_pair, pair_prices):
        settings = Settings(symbols=["BTCUSDT", "ETHUSDT", "SOLUSDT"], auto_start=False)
        orch = RecomputeOrchestrator(settings, source=source, store=store)
        feed_pair(*pair_prices(40))

        assert orch.recompute() is None
        assert orch.stats()["cycles_skipped"] == 1

    def test_trims_to_common_length(self, orchestrator, source, make_tick):
        for i in range(30):
            source.emit(make_tick("BTCUSDT", 100.0 + i, i))
        for i in range(25):
            source.emit(make_tick("ETHUSDT", 50.0 + i % 3, i))

        snapshot = orchestrator.recompute()

        assert snapshot.sample_count == 25
        assert len(snapshot.z_score) == 25
        # only the copy is trimmed
        assert orchestrator.buffer.count("BTCUSDT") == 30

    def test_hedge_ratio_and_metrics(self, orchestrator, feed_pair, pair_prices):
        feed_pair(*pair_prices(60))

        snapshot = orchestrator.recompute(now=42)

        assert snapshot.hedge_ratio == pytest.approx(2.0, abs=0.1)
        assert snapshot.correlation > 0.95
        assert snapshot.symbols == ("BTCUSDT", "ETHUSDT")
        assert snapshot.regression_method == "ols"
        assert snapshot.computed_at == 42
        assert snapshot.adf_statistic is not None
        assert snapshot.half_life is not None

    @pytest.mark.parametrize("n,has_adf", [(30, False), (31, True)])
    def test_adf_needs_more_than_adf_min_length(self, orchestrator, feed_pair, pair_prices, n, has_adf):
        feed_pair(*pair_prices(n))

        snapshot = orchestrator.recompute()

        assert (snapshot.adf_statistic is not None) == has_adf
        assert (snapshot.is_stationary is not None) == has_adf

    @pytest.mark.parametrize("method", ["huber", "theil-sen"])
    def test_robust_methods(self, orchestrator, feed_pair, pair_prices, method):
        orchestrator.set_regression_method(method)
        feed_pair(*pair_prices(60))

        snapshot = orchestrator.recompute()

        assert snapshot.regression_method == method
        assert snapshot.hedge_ratio == pytest.approx(2.0, abs=0.1)

    def test_kalman_method_fixes_hedge_ratio(self, orchestrator, feed_pair, pair_prices, caplog):
        orchestrator.set_regression_method("kalman")
        feed_pair(*pair_prices(40))

        snapshot = orchestrator.recompute()

        assert snapshot.hedge_ratio == 1.0
        assert "fixed hedge ratio" in caplog.text

    def test_spread_matches_hedge_ratio(self, orchestrator, feed_pair, pair_prices):
        a, b = pair_prices(40)
        feed_pair(a, b)

        snapshot = orchestrator.recompute()

        expected = a - snapshot.hedge_ratio * b
        assert np.allclose(snapshot.spread, expected)

    def test_failure_keeps_previous_snapshot(self, orchestrator, feed_pair, pair_prices, monkeypatch, caplog):
        feed_pair(*pair_prices(40))
        previous = orchestrator.recompute()

        def explode(*args, **kwargs):
            raise RuntimeError("numerical failure")

        monkeypatch.setattr(orchestrator, "compute_snapshot", explode)

        assert orchestrator.recompute() is None
        assert orchestrator.snapshot is previous
        assert orchestrator.stats()["errors"] == 1
        assert "Recompute cycle failed" in caplog.text

    def test_alerts_evaluated_after_publish(self, orchestrator, feed_pair, pair_prices):
        alert = orchestrator.alerts.add_alert(Alert(
            id="", type=AlertType.PRICE, condition=AlertCondition.ABOVE, threshold=0.0
        ))
        feed_pair(*pair_prices(30))

        orchestrator.recompute()
        orchestrator.recompute()

        assert alert.triggered
        assert len(orchestrator.alerts.get_history()) == 1

    @pytest.mark.parametrize("condition, threshold, jump", [
        (AlertCondition.ABOVE, 2.0, 25.0),
        (AlertCondition.BELOW, -2.0, -25.0),
    ])
    def test_z_score_alert_fires_from_cycle(self, orchestrator, feed_pair, pair_prices,
                                            condition, threshold, jump):
        alert = orchestrator.alerts.add_alert(Alert(
            id="", type=AlertType.Z_SCORE, condition=condition, threshold=threshold
        ))
        a, b = pair_prices(40)
        a[-1] += jump
        feed_pair(a, b)

        now = 1_700_000_123_456
        snapshot = orchestrator.recompute(now=now)

        assert abs(snapshot.last_z_score) > 3.0
        assert alert.triggered
        assert alert.triggered_at == now
        events = orchestrator.alerts.get_history()
        assert len(events) == 1
        assert events[0].timestamp == now
        assert events[0].value == pytest.approx(snapshot.last_z_score)


class TestIngest:
    def test_source_ticks_reach_buffer_and_store(self, orchestrator, source, store, make_tick):
        source.emit(make_tick("btcusdt", 10.0))

        assert orchestrator.buffer.count("BTCUSDT") == 1
        assert len(store.ticks) == 1

    def test_store_failure_is_logged_not_raised(self, orchestrator, source, store, make_tick, caplog):
        store.fail = True

        source.emit(make_tick())

        assert orchestrator.buffer.count("BTCUSDT") == 1
        assert orchestrator.stats()["store_errors"] == 1
        assert "Failed to persist tick" in caplog.text

    def test_close_unsubscribes(self, orchestrator, source, make_tick):
        orchestrator.close()
        source.emit(make_tick())

        assert orchestrator.buffer.count("BTCUSDT") == 0

    def test_upload_ohlc(self, orchestrator, store):
        bars = [
            OHLCBar(timestamp=0, symbol="BTCUSDT", open=1, high=2, low=0.5, close=1.5),
            OHLCBar(timestamp=0, symbol="ETHUSDT", open=3, high=4, low=2.5, close=3.5),
        ]

        result = orchestrator.upload_ohlc(bars)

        assert result.count == 2
        assert result.symbols == ["BTCUSDT", "ETHUSDT"]
        assert len(store.bars) == 2
        assert len(orchestrator.uploaded_ohlc("ethusdt")["ETHUSDT"]) == 1


class TestControl:
    def test_connect_resets_buffers(self, orchestrator, source, make_tick):
        source.emit(make_tick("BTCUSDT"))

        orchestrator.connect(["solusdt", "ethusdt"])

        assert orchestrator.buffer.count("BTCUSDT") == 0
        assert orchestrator.symbols == ["SOLUSDT", "ETHUSDT"]
        assert source.connected[-1] == ["SOLUSDT", "ETHUSDT"]
        assert source.disconnects == 1

    def test_connect_requires_symbols(self, orchestrator):
        with pytest.raises(InvalidInput):
            orchestrator.connect([" "])

    def test_disconnect(self, orchestrator, source):
        orchestrator.disconnect()
        assert source.disconnects == 1

    def test_setters_validate(self, orchestrator):
        with pytest.raises(InvalidInput):
            orchestrator.set_regression_method("lasso")
        with pytest.raises(InvalidInput):
            orchestrator.set_rolling_window(0)
        with pytest.raises(InvalidInput):
            orchestrator.set_timeframe("7m")

        orchestrator.set_rolling_window(50)
        orchestrator.set_timeframe("5m")
        assert orchestrator.rolling_window == 50
        assert orchestrator.timeframe == "5m"

    def test_clear(self, orchestrator, store, feed_pair, pair_prices):
        feed_pair(*pair_prices(25))
        orchestrator.recompute()

        orchestrator.clear()

        assert orchestrator.snapshot is None
        assert orchestrator.buffer.symbols() == []
        assert store.cleared == 1

    def test_backtest_over_snapshot(self, orchestrator, feed_pair, pair_prices):
        assert orchestrator.backtest() is None

        feed_pair(*pair_prices(60))
        orchestrator.recompute()
        result = orchestrator.backtest(entry_threshold=1.0)

        assert result.total_trades == result.winning_trades + result.losing_trades

    def test_track_ratio(self, orchestrator, feed_pair, pair_prices):
        assert orchestrator.track_ratio() is None

        a, b = pair_prices(40)
        feed_pair(a, b)
        result = orchestrator.track_ratio()

        assert len(result["estimates"]) == 40
        assert result["current"] == pytest.approx(float(np.mean(a / b)), rel=0.05)

    def test_ohlc_from_buffer(self, orchestrator, feed_pair, pair_prices):
        feed_pair(*pair_prices(120))

        bars = orchestrator.ohlc("BTCUSDT", "1m")

        # one tick per second starting 20s into a minute
        assert len(bars) == 3
        assert [b.volume for b in bars] == [40.0, 60.0, 20.0]
        assert bars[0].timestamp % 60_000 == 0

    def test_run_loop(self, orchestrator, feed_pair, pair_prices):
        feed_pair(*pair_prices(30))

        async def scenario():
            orchestrator.start()
            await asyncio.sleep(0.05)
            assert orchestrator.is_running
            await orchestrator.stop()

        asyncio.run(scenario())

        assert orchestrator.snapshot is not None
        assert not orchestrator.is_running
        assert orchestrator.stats()["cycles"] >= 1
