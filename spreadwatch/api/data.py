from fastapi import APIRouter, Depends, HTTPException, Query

from spreadwatch.core.orchestrator import RecomputeOrchestrator
from spreadwatch.core.resampler import TIMEFRAME_MS

from .deps import get_orchestrator, get_store

router = APIRouter(prefix="/data", tags=["Data"])


def _history_store(store):
    if store is None or not hasattr(store, "get_ticks"):
        raise HTTPException(503, "No persistent store configured")
    return store


@router.get("/symbols")
async def list_symbols(orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)):
    return {
        "tracked": orchestrator.symbols,
        "buffered": orchestrator.buffer.symbols(),
    }


@router.get("/stats")
async def get_stats(orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)):
    return orchestrator.stats()


@router.get("/storage")
def get_storage_stats(store=Depends(get_store)):
    """Row counts and symbols in the persistent store"""
    return _history_store(store).get_stats()


@router.get("/history/{symbol}/ticks")
def get_stored_ticks(
    symbol: str,
    limit: int = Query(default=1000, ge=1, le=100_000),
    store=Depends(get_store)
):
    """Persisted ticks, oldest first; reaches back past the live buffer"""
    ticks = _history_store(store).get_ticks(symbol, limit)

    if not ticks:
        raise HTTPException(404, f"No stored ticks for {symbol}")

    return {
        "symbol": symbol.upper(),
        "count": len(ticks),
        "data": [t.model_dump() for t in ticks]
    }


@router.get("/history/{symbol}/ohlc")
def get_stored_ohlc(
    symbol: str,
    limit: int = Query(default=500, ge=1),
    store=Depends(get_store)
):
    """Persisted uploaded bars"""
    bars = _history_store(store).get_ohlc_bars(symbol, limit)

    if not bars:
        raise HTTPException(404, f"No stored OHLC data for {symbol}")

    return {
        "symbol": symbol.upper(),
        "count": len(bars),
        "data": [b.model_dump() for b in bars]
    }


@router.get("/{symbol}/ticks")
async def get_ticks(
    symbol: str,
    limit: int = Query(default=1000, ge=1),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    ticks = orchestrator.buffer.get(symbol, limit)

    if not ticks:
        raise HTTPException(404, f"No tick data for {symbol}")

    return {
        "symbol": symbol.upper(),
        "count": len(ticks),
        "data": [
            {
                "timestamp": t.timestamp,
                "price": t.price,
                "quantity": t.quantity
            }
            for t in ticks
        ]
    }


@router.get("/{symbol}/ohlc")
async def get_ohlc(
    symbol: str,
    timeframe: str = Query(default=None),
    limit: int = Query(default=500, ge=1),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    """Bars aggregated from live ticks at the given (or configured) timeframe"""
    timeframe = timeframe or orchestrator.timeframe
    if timeframe not in TIMEFRAME_MS:
        raise HTTPException(400, f"Unknown timeframe: {timeframe}")

    bars = orchestrator.ohlc(symbol, timeframe)[-limit:]

    if not bars:
        raise HTTPException(404, f"No OHLC data for {symbol}")

    return {
        "symbol": symbol.upper(),
        "timeframe": timeframe,
        "count": len(bars),
        "data": [b.model_dump() for b in bars]
    }


@router.get("/{symbol}/uploaded")
async def get_uploaded_ohlc(
    symbol: str,
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    bars = orchestrator.uploaded_ohlc(symbol)[symbol.upper()]

    if not bars:
        raise HTTPException(404, f"No uploaded OHLC data for {symbol}")

    return {
        "symbol": symbol.upper(),
        "count": len(bars),
        "data": [b.model_dump() for b in bars]
    }


@router.post("/clear")
async def clear_data(orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)):
    orchestrator.clear()
    return {"message": "Cleared all data"}
