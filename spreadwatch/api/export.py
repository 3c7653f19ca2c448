"""
Data Export API
Download endpoints for buffered data and analytics outputs.

Formats:
    - CSV (default): Excel/pandas compatible
    - JSON: For programmatic access

Exports:
    - Tick data
    - OHLC data
    - Analytics results and spread series
    - Backtest results
    - Alert history
"""

import io
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from typing import Literal

from spreadwatch.analytics.models import InvalidInput
from spreadwatch.core.orchestrator import RecomputeOrchestrator
from spreadwatch.services import export

from .deps import get_orchestrator

router = APIRouter(prefix="/export", tags=["Export"])

ExportFormat = Literal["csv", "json"]

MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}


def _download(content: str, prefix: str, fmt: str) -> StreamingResponse:
    filename = export.export_filename(prefix, fmt)
    return StreamingResponse(
        io.BytesIO(content.encode()),
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


def _require_snapshot(orchestrator: RecomputeOrchestrator):
    snapshot = orchestrator.snapshot
    if snapshot is None:
        raise HTTPException(404, "No analytics computed yet")
    return snapshot


# =============================================================================
# Market Data Export
# =============================================================================

@router.get("/ticks")
async def export_ticks(
    format: ExportFormat = Query(default="csv"),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """Buffered ticks for every tracked symbol"""
    ticks = [t for sym in orchestrator.symbols for t in orchestrator.buffer.get(sym)]

    if not ticks:
        raise HTTPException(404, "No tick data")

    content = export.ticks_to_json(ticks) if format == "json" else export.ticks_to_csv(ticks)
    return _download(content, "ticks", format)


@router.get("/ohlc")
async def export_ohlc(
    format: ExportFormat = Query(default="csv"),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """Uploaded OHLC bars, grouped by symbol"""
    bars = {sym: b for sym, b in orchestrator.uploaded_ohlc().items() if b}

    if not bars:
        raise HTTPException(404, "No OHLC data")

    content = export.ohlc_to_json(bars) if format == "json" else export.ohlc_to_csv(bars)
    return _download(content, "ohlc", format)


# =============================================================================
# Analytics Export
# =============================================================================

@router.get("/analytics")
async def export_analytics(
    format: ExportFormat = Query(default="csv"),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """Headline metrics of the current snapshot"""
    snapshot = _require_snapshot(orchestrator)
    content = export.analytics_to_json(snapshot) if format == "json" else export.analytics_to_csv(snapshot)
    return _download(content, "analytics", format)


@router.get("/spread")
async def export_spread(orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)):
    """Spread and z-score series of the current snapshot"""
    snapshot = _require_snapshot(orchestrator)
    return _download(export.spread_to_csv(snapshot), "spread", "csv")


@router.get("/backtest")
async def export_backtest(
    entry_z: float = Query(default=2.0, gt=0),
    exit_z: float = Query(default=0.0, ge=0),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    try:
        result = orchestrator.backtest(entry_z, exit_z)
    except InvalidInput as e:
        raise HTTPException(400, str(e))

    if result is None:
        raise HTTPException(404, "No analytics computed yet")

    return _download(export.backtest_to_json(result), "backtest", "json")


# =============================================================================
# Alert History Export
# =============================================================================

@router.get("/alerts")
async def export_alerts(
    format: ExportFormat = Query(default="csv"),
    limit: int = Query(default=200, le=1000),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    history = orchestrator.alerts.get_history(limit)

    if not history:
        raise HTTPException(404, "No alert history")

    content = export.alerts_to_json(history) if format == "json" else export.alerts_to_csv(history)
    return _download(content, "alerts", format)
