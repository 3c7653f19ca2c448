from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Query
from pydantic import BaseModel
import pandas as pd
from io import StringIO
import logging
from typing import Any, Dict, List, Tuple

from spreadwatch.core.models import OHLCBar, IngestionResult, to_tick, to_ohlc_bar
from spreadwatch.core.orchestrator import RecomputeOrchestrator

from .deps import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Upload"])

TIMESTAMP_COLUMNS = ['timestamp', 'ts', 'time', 'datetime', 'date']


class TickBatch(BaseModel):
    """Raw tick records, normalized with to_tick"""
    ticks: List[Dict[str, Any]]


@router.post("/ohlc", response_model=IngestionResult)
async def upload_ohlc_csv(
    file: UploadFile = File(...),
    symbol: str = Query(default=None, description="Symbol when the CSV has no symbol column"),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    content = await file.read()
    try:
        df = pd.read_csv(StringIO(content.decode('utf-8')))
    except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise HTTPException(400, f"Unreadable CSV: {e}")
    df.columns = df.columns.str.lower().str.strip()

    missing = [c for c in ['open', 'high', 'low', 'close'] if c not in df.columns]
    if missing:
        raise HTTPException(400, f"OHLC CSV is missing columns: {', '.join(missing)}")
    if 'symbol' not in df.columns and not symbol:
        raise HTTPException(400, "Provide a symbol column or the 'symbol' query parameter")

    bars, errors = _parse_ohlc_csv(df, symbol)
    if not bars:
        raise HTTPException(400, "No valid records in file")

    result = orchestrator.upload_ohlc(bars)
    result.errors += errors
    return result


def _parse_ohlc_csv(df: pd.DataFrame, symbol: str = None) -> Tuple[List[OHLCBar], int]:
    ts_col = next((c for c in TIMESTAMP_COLUMNS if c in df.columns), None)
    if not ts_col:
        raise HTTPException(400, "OHLC CSV must have timestamp column")

    bars = []
    errors = 0
    for _, row in df.iterrows():
        try:
            bar = to_ohlc_bar({
                'symbol': row['symbol'] if 'symbol' in df.columns else symbol,
                'timestamp': row[ts_col],
                'open': row['open'],
                'high': row['high'],
                'low': row['low'],
                'close': row['close'],
                'volume': row.get('volume', 0)
            })
            bars.append(bar)
        except (ValueError, TypeError, KeyError):
            errors += 1

    if errors:
        logger.warning("Skipped %d malformed OHLC rows", errors)
    return bars, errors


@router.post("/ticks", response_model=IngestionResult)
async def upload_tick_batch(
    payload: TickBatch,
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
):
    ticks = []
    errors = 0

    for data in payload.ticks:
        try:
            ticks.append(to_tick(data))
        except (ValueError, TypeError, KeyError):
            errors += 1

    if not ticks:
        raise HTTPException(400, "No valid ticks")

    result = orchestrator.ingest_batch(ticks)
    result.errors += errors

    return result
