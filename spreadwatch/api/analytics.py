from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from typing import Optional

from spreadwatch.analytics import regression, series
from spreadwatch.analytics.models import InvalidInput
from spreadwatch.config import RegressionMethod, TimeFrame
from spreadwatch.core.orchestrator import RecomputeOrchestrator

from .deps import get_orchestrator

router = APIRouter(prefix="/analytics", tags=["Analytics"])


class ConfigUpdate(BaseModel):
    """Partial update of the live cycle parameters"""
    regression_method: Optional[RegressionMethod] = None
    rolling_window: Optional[int] = Field(default=None, ge=10, le=100)
    timeframe: Optional[TimeFrame] = None


def _config(orchestrator: RecomputeOrchestrator) -> dict:
    return {
        "symbols": orchestrator.symbols,
        "regression_method": orchestrator.regression_method,
        "rolling_window": orchestrator.rolling_window,
        "timeframe": orchestrator.timeframe,
    }


def _require_prices(orchestrator: RecomputeOrchestrator):
    prices = orchestrator.aligned_prices(min_samples=2)
    if prices is None:
        raise HTTPException(404, "Insufficient data for the tracked pair")
    return prices


@router.get("/snapshot")
async def get_snapshot(
    tail: Optional[int] = Query(default=None, ge=1, description="Only the last N spread/z-score points"),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    snapshot = orchestrator.snapshot
    if snapshot is None:
        raise HTTPException(404, "No analytics computed yet")
    return snapshot.to_dict(tail)


@router.post("/recompute")
async def recompute_now(orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)):
    """Run one cycle immediately instead of waiting for the timer"""
    snapshot = orchestrator.recompute()
    if snapshot is None:
        raise HTTPException(409, "Not enough data to compute analytics")
    return snapshot.to_dict()


@router.get("/config")
async def get_config(orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)):
    return _config(orchestrator)


@router.put("/config")
async def update_config(
    update: ConfigUpdate,
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    try:
        if update.regression_method is not None:
            orchestrator.set_regression_method(update.regression_method)
        if update.rolling_window is not None:
            orchestrator.set_rolling_window(update.rolling_window)
        if update.timeframe is not None:
            orchestrator.set_timeframe(update.timeframe)
    except InvalidInput as e:
        raise HTTPException(400, str(e))

    return _config(orchestrator)


@router.get("/backtest")
async def run_backtest(
    entry_z: float = Query(default=2.0, gt=0),
    exit_z: float = Query(default=0.0, ge=0),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """
    Mean-reversion backtest over the current snapshot.

    Short the spread above +entry_z, long below -entry_z,
    exit once |z| falls under exit_z.
    """
    try:
        result = orchestrator.backtest(entry_z, exit_z)
    except InvalidInput as e:
        raise HTTPException(400, str(e))

    if result is None:
        raise HTTPException(404, "No analytics computed yet")

    return {
        "pair": "/".join(orchestrator.symbols),
        "params": {"entry_z": entry_z, "exit_z": exit_z},
        **result.to_dict()
    }


@router.get("/kalman")
async def get_kalman_ratio(
    tail: int = Query(default=100, ge=1),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """Kalman-smoothed price ratio of the tracked pair"""
    result = orchestrator.track_ratio()
    if result is None:
        raise HTTPException(404, "Insufficient data for the tracked pair")

    return {
        "pair": "/".join(orchestrator.symbols),
        "current": result["current"],
        "covariance": result["covariance"],
        "estimates": result["estimates"][-tail:],
    }


@router.get("/regression")
async def compare_regressions(
    method: Optional[str] = Query(default=None, description="ols, huber or theil-sen; all when omitted"),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """Fit the tracked pair (A on B) with one or every regression"""
    if method is not None and method not in regression.REGRESSIONS:
        raise HTTPException(400, f"Unknown regression method: {method}")

    prices_a, prices_b = _require_prices(orchestrator)
    methods = [method] if method else list(regression.REGRESSIONS)

    fits = {}
    for name in methods:
        try:
            fit = regression.REGRESSIONS[name](prices_b, prices_a)
        except InvalidInput as e:
            raise HTTPException(400, str(e))
        fits[name] = {
            "slope": round(fit.slope, 6),
            "intercept": round(fit.intercept, 6),
            "r_squared": round(fit.r_squared, 6),
        }

    return {
        "pair": "/".join(orchestrator.symbols),
        "samples": len(prices_a),
        "fits": fits
    }


@router.get("/rolling-correlation")
async def get_rolling_correlation(
    window: int = Query(default=20, ge=2),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    prices_a, prices_b = _require_prices(orchestrator)
    values = series.rolling_correlation(prices_a, prices_b, window)

    return {
        "pair": "/".join(orchestrator.symbols),
        "window": window,
        "values": [round(float(v), 6) for v in values]
    }
