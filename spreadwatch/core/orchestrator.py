"""
Recompute Orchestrator
Ties the live tick buffers to published analytics snapshots.

Flow (every recompute_interval_ms):
1. Copy the trailing common-length window of both symbols' prices
2. Hedge ratio (ols / huber / theil-sen; kalman uses 1.0)
3. Spread → rolling z-score → correlation
4. ADF + half-life once the spread is long enough
5. Publish the new snapshot (single reference swap)
6. Evaluate alerts against it

Ingestion runs on the transport's thread and only appends to the buffer.
The cycle runs on the event loop and is the only writer of the snapshot
and of alert trigger state.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Any

import numpy as np

from spreadwatch.alerts import AlertEngine
from spreadwatch.analytics import backtest, kalman, regression, series, stationarity
from spreadwatch.analytics.models import AnalyticsSnapshot, BacktestResult, InvalidInput
from spreadwatch.config import Settings

from .buffer import PriceBuffer, OHLCBuffer
from .interfaces import TickSource, TickStore
from .models import Tick, OHLCBar, IngestionResult
from .resampler import TIMEFRAME_MS, aggregate_ticks, timeframe_to_ms

logger = logging.getLogger(__name__)

KALMAN_METHOD = "kalman"
FIXED_KALMAN_HEDGE_RATIO = 1.0


def _now_ms() -> int:
    return int(datetime.now().timestamp() * 1000)


class RecomputeOrchestrator:
    def __init__(
        self,
        settings: Settings = None,
        source: TickSource = None,
        store: TickStore = None,
        alert_engine: AlertEngine = None
    ):
        self._settings = settings or Settings()
        self._symbols: List[str] = list(self._settings.symbols)
        self._timeframe = self._settings.timeframe
        self._rolling_window = self._settings.rolling_window
        self._regression_method = self._settings.regression_method

        self._buffer = PriceBuffer(capacity=self._settings.buffer_capacity)
        self._ohlc_buffer = OHLCBuffer(maxlen=self._settings.buffer_capacity)
        self._snapshot: Optional[AnalyticsSnapshot] = None
        self._alerts = alert_engine or AlertEngine()

        self._source = source
        self._store = store
        self._unsubscribe = source.subscribe(self.ingest) if source else None
        self._task: Optional[asyncio.Task] = None

        self._stats = {
            "ticks_ingested": 0,
            "cycles": 0,
            "cycles_skipped": 0,
            "errors": 0,
            "store_errors": 0,
            "last_cycle_ms": None,
            "start_time": datetime.now()
        }

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def snapshot(self) -> Optional[AnalyticsSnapshot]:
        return self._snapshot

    @property
    def alerts(self) -> AlertEngine:
        return self._alerts

    @property
    def buffer(self) -> PriceBuffer:
        return self._buffer

    @property
    def symbols(self) -> List[str]:
        return list(self._symbols)

    @property
    def regression_method(self) -> str:
        return self._regression_method

    @property
    def rolling_window(self) -> int:
        return self._rolling_window

    @property
    def timeframe(self) -> str:
        return self._timeframe

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest(self, tick: Tick) -> None:
        """Buffer a tick; persistence is best-effort"""
        self._buffer.append(tick)
        self._stats["ticks_ingested"] += 1

        if self._store is not None:
            try:
                self._store.append_tick(tick)
            except Exception:
                self._stats["store_errors"] += 1
                logger.warning("Failed to persist tick for %s", tick.symbol, exc_info=True)

    def ingest_batch(self, ticks: List[Tick]) -> IngestionResult:
        for tick in ticks:
            self.ingest(tick)
        return IngestionResult(
            success=True,
            count=len(ticks),
            symbols=sorted(set(t.symbol for t in ticks)),
            message=f"Ingested {len(ticks)} ticks"
        )

    def upload_ohlc(self, bars: List[OHLCBar]) -> IngestionResult:
        """Keep uploaded bars per symbol and hand them to the store"""
        if not bars:
            return IngestionResult(success=True, count=0, message="No bars")

        self._ohlc_buffer.extend(bars)

        if self._store is not None:
            try:
                self._store.append_ohlc_batch(bars)
            except Exception:
                self._stats["store_errors"] += 1
                logger.warning("Failed to persist %d OHLC bars", len(bars), exc_info=True)

        return IngestionResult(
            success=True,
            count=len(bars),
            symbols=sorted(set(b.symbol for b in bars)),
            message=f"Uploaded {len(bars)} OHLC records"
        )

    # =========================================================================
    # Control surface
    # =========================================================================

    def connect(self, symbols: List[str]) -> None:
        """Switch to a new symbol set, starting from empty buffers"""
        symbols = [s.strip().upper() for s in symbols if s and s.strip()]
        if not symbols:
            raise InvalidInput("No symbols provided")

        if self._source is not None:
            self._source.disconnect()

        self._buffer.clear()
        self._snapshot = None
        self._symbols = symbols
        logger.info("Tracking symbols %s", ", ".join(symbols))

        if self._source is not None:
            self._source.connect(symbols)

    def disconnect(self) -> None:
        if self._source is not None:
            self._source.disconnect()
        logger.info("Disconnected from tick source")

    def set_regression_method(self, method: str) -> None:
        if method not in regression.REGRESSIONS and method != KALMAN_METHOD:
            raise InvalidInput(f"Unknown regression method: {method}")
        if method == KALMAN_METHOD:
            logger.warning("Regression method 'kalman' uses a fixed hedge ratio of %.1f",
                           FIXED_KALMAN_HEDGE_RATIO)
        self._regression_method = method

    def set_rolling_window(self, window: int) -> None:
        if window < 1:
            raise InvalidInput(f"window must be >= 1, got {window}")
        self._rolling_window = window

    def set_timeframe(self, timeframe: str) -> None:
        if timeframe not in TIMEFRAME_MS:
            raise InvalidInput(f"Unknown timeframe: {timeframe}")
        self._timeframe = timeframe

    def clear(self) -> None:
        """Drop buffered ticks, uploaded bars, the snapshot and stored data"""
        self._buffer.clear()
        self._ohlc_buffer.clear()
        self._snapshot = None

        if self._store is not None:
            try:
                self._store.clear_all()
            except Exception:
                self._stats["store_errors"] += 1
                logger.warning("Failed to clear store", exc_info=True)

    # =========================================================================
    # Recompute cycle
    # =========================================================================

    def aligned_prices(self, min_samples: int = None) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """
        Trailing common-length price windows of the two tracked symbols.

        Works on a copy: the longer series loses its oldest excess, the
        buffers themselves are untouched. None when the pair is not ready.
        """
        if len(self._symbols) != 2:
            return None
        if min_samples is None:
            min_samples = self._settings.min_samples

        symbol_a, symbol_b = self._symbols
        ticks = self._buffer.snapshot()
        ticks_a = ticks.get(symbol_a, [])
        ticks_b = ticks.get(symbol_b, [])

        if len(ticks_a) < min_samples or len(ticks_b) < min_samples:
            return None

        n = min(len(ticks_a), len(ticks_b))
        prices_a = np.array([t.price for t in ticks_a[-n:]], dtype=float)
        prices_b = np.array([t.price for t in ticks_b[-n:]], dtype=float)
        return prices_a, prices_b

    def hedge_ratio(self, prices_a: np.ndarray, prices_b: np.ndarray) -> float:
        if self._regression_method == KALMAN_METHOD:
            return FIXED_KALMAN_HEDGE_RATIO
        fit = regression.REGRESSIONS[self._regression_method](prices_b, prices_a)
        return fit.slope

    def compute_snapshot(
        self,
        prices_a: np.ndarray,
        prices_b: np.ndarray,
        now: int = None
    ) -> AnalyticsSnapshot:
        hedge_ratio = self.hedge_ratio(prices_a, prices_b)
        spread = series.spread(prices_a, prices_b, hedge_ratio)
        z_scores = series.rolling_z_scores(spread, self._rolling_window)
        corr = series.correlation(prices_a, prices_b)

        adf = None
        hl = None
        if len(spread) > self._settings.adf_min_length:
            adf = stationarity.adf_test(spread)
            hl = stationarity.half_life(spread)

        return AnalyticsSnapshot(
            hedge_ratio=float(hedge_ratio),
            spread=tuple(float(v) for v in spread),
            z_score=tuple(float(v) for v in z_scores),
            correlation=corr,
            adf_statistic=adf.statistic if adf else None,
            adf_p_value=adf.p_value if adf else None,
            is_stationary=adf.is_stationary if adf else None,
            half_life=hl.half_life if hl else None,
            symbols=tuple(self._symbols),
            regression_method=self._regression_method,
            computed_at=now if now is not None else _now_ms(),
        )

    def recompute(self, now: int = None) -> Optional[AnalyticsSnapshot]:
        """
        Run one cycle.

        Never raises: a failing cycle is logged and the previous snapshot
        stays published.
        """
        try:
            prices = self.aligned_prices()
            if prices is None:
                self._stats["cycles_skipped"] += 1
                return None

            started = datetime.now()
            snapshot = self.compute_snapshot(*prices, now=now)
            self._snapshot = snapshot

            latest = {sym: self._buffer.get_latest(sym) for sym in self._symbols}
            self._alerts.evaluate(
                snapshot,
                {sym: tick for sym, tick in latest.items() if tick is not None},
                now=now
            )

            self._stats["cycles"] += 1
            self._stats["last_cycle_ms"] = round(
                (datetime.now() - started).total_seconds() * 1000, 2
            )
            return snapshot
        except Exception:
            self._stats["errors"] += 1
            logger.exception("Recompute cycle failed")
            return None

    async def run(self) -> None:
        interval = self._settings.recompute_interval_ms / 1000
        logger.info("Recompute loop started (every %dms)", self._settings.recompute_interval_ms)
        while True:
            self.recompute()
            await asyncio.sleep(interval)

    def start(self) -> None:
        """Schedule the cycle on the running event loop"""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Recompute loop stopped")

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # =========================================================================
    # On-demand analytics
    # =========================================================================

    def backtest(
        self,
        entry_threshold: float = 2.0,
        exit_threshold: float = 0.0
    ) -> Optional[BacktestResult]:
        """Backtest over the current snapshot's spread and z-scores"""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return backtest.run_backtest(
            snapshot.spread, snapshot.z_score, entry_threshold, exit_threshold
        )

    def track_ratio(self, state: kalman.KalmanState = None) -> Optional[Dict[str, Any]]:
        """Kalman-smoothed price ratio over the buffered pair"""
        prices = self.aligned_prices(min_samples=2)
        if prices is None:
            return None
        estimates, final = kalman.track_price_ratio(*prices, state=state)
        return {
            "estimates": estimates,
            "current": final.estimate,
            "covariance": final.covariance,
        }

    def ohlc(self, symbol: str, timeframe: str = None) -> List[OHLCBar]:
        """Bars aggregated from buffered ticks"""
        interval = timeframe_to_ms(timeframe or self._timeframe)
        return aggregate_ticks(self._buffer.get(symbol), interval)

    def uploaded_ohlc(self, symbol: str = None) -> Dict[str, List[OHLCBar]]:
        symbols = [symbol.upper()] if symbol else self._ohlc_buffer.symbols()
        return {sym: self._ohlc_buffer.get(sym) for sym in symbols}

    def stats(self) -> Dict[str, Any]:
        uptime = (datetime.now() - self._stats["start_time"]).total_seconds()
        return {
            **self._stats,
            "start_time": self._stats["start_time"].isoformat(),
            "uptime_seconds": round(uptime, 2),
            "is_running": self.is_running,
            "symbols": self.symbols,
            "regression_method": self._regression_method,
            "rolling_window": self._rolling_window,
            "timeframe": self._timeframe,
            "tick_buffer": self._buffer.stats(),
            "ohlc_buffer": self._ohlc_buffer.stats(),
            "has_snapshot": self._snapshot is not None,
        }
