"""
Live Feed API
Endpoints to control live Binance data streaming.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional

from spreadwatch.analytics.models import InvalidInput
from spreadwatch.core.orchestrator import RecomputeOrchestrator

from .deps import get_orchestrator, get_feed


router = APIRouter(prefix="/live", tags=["Live Feed"])


class ConnectRequest(BaseModel):
    """Request to (re)connect the live feed"""
    symbols: List[str] = ["BTCUSDT", "ETHUSDT"]


class FeedResponse(BaseModel):
    """Response for feed operations"""
    status: str
    symbols: Optional[List[str]] = None
    message: Optional[str] = None
    total_ticks: Optional[int] = None


@router.post("/connect", response_model=FeedResponse)
def connect_live_feed(
    request: ConnectRequest,
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """
    Track a new symbol set.

    Clears the tick buffers and restarts the Binance stream
    for the requested symbols. Runs in the threadpool since stopping
    the previous stream joins its thread.
    """
    try:
        orchestrator.connect(request.symbols)
    except InvalidInput as e:
        raise HTTPException(400, str(e))

    return FeedResponse(status="connected", symbols=orchestrator.symbols)


@router.post("/disconnect", response_model=FeedResponse)
def disconnect_live_feed(
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator),
    feed=Depends(get_feed)
):
    """Stop live data feed"""
    orchestrator.disconnect()
    feed_stats = getattr(feed, "stats", None)
    total = feed_stats.ticks_received if feed_stats is not None else None
    return FeedResponse(status="disconnected", total_ticks=total)


@router.get("/status")
async def get_feed_status(
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator),
    feed=Depends(get_feed)
):
    """
    Get current status of live feed.

    Returns:
        Feed statistics including tick count, rate, uptime
    """
    stats = getattr(feed, "stats", None)
    feed_stats = stats.to_dict() if stats is not None else {}
    running = bool(getattr(feed, "is_running", False))
    return {
        "status": "running" if running else "stopped",
        "symbols": orchestrator.symbols,
        "buffer": orchestrator.buffer.stats(),
        "feed": feed_stats,
    }


@router.get("/symbols")
async def get_available_symbols():
    """
    Get list of commonly used trading symbols.
    """
    return {
        "popular": [
            "BTCUSDT",
            "ETHUSDT",
            "BNBUSDT",
            "SOLUSDT",
            "XRPUSDT",
            "DOGEUSDT",
            "ADAUSDT",
            "AVAXUSDT",
            "DOTUSDT",
            "LINKUSDT"
        ],
        "pairs": [
            ["BTCUSDT", "ETHUSDT"],
            ["BTCUSDT", "BNBUSDT"],
            ["ETHUSDT", "BNBUSDT"],
            ["SOLUSDT", "ETHUSDT"]
        ]
    }
