"""
Domain Models
The SINGLE SOURCE OF TRUTH for data formats.

After normalization, the system only sees these types.
"""

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List
from datetime import datetime


def _epoch_ms(v):
    """Handle datetimes, ISO strings and numeric epoch-ms values"""
    if hasattr(v, 'item'):
        # numpy / pandas scalars
        v = v.item()
    if isinstance(v, datetime):
        return int(v.timestamp() * 1000)
    if isinstance(v, str):
        try:
            return int(float(v))
        except ValueError:
            parsed = datetime.fromisoformat(v.replace('Z', '+00:00'))
            return int(parsed.timestamp() * 1000)
    if isinstance(v, float):
        return int(v)
    return v


# =============================================================================
# Tick: The Core Data Contract
# =============================================================================

class Tick(BaseModel):
    """
    A single trade/tick event.

    This is THE internal representation. Everything converts to this.
    The engine never sees JSON, CSV rows, or WebSocket payloads.
    It sees ONLY Ticks.

    Fields:
        timestamp: Epoch milliseconds
        symbol: Uppercase symbol (BTCUSDT)
        price: Trade price
        quantity: Trade size
    """
    model_config = ConfigDict(frozen=True)

    timestamp: int
    symbol: str = Field(..., min_length=1, max_length=20)
    price: float
    quantity: float = Field(default=0.0, ge=0)

    @field_validator('symbol', mode='before')
    @classmethod
    def uppercase_symbol(cls, v):
        """Always uppercase symbols"""
        return v.upper() if isinstance(v, str) else v

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        return _epoch_ms(v)


# =============================================================================
# OHLCBar: Aggregated Price Data
# =============================================================================

class OHLCBar(BaseModel):
    """
    A single OHLC bar (candlestick).

    Either:
    - Created by aggregating ticks
    - Uploaded directly from OHLC CSV
    """
    timestamp: int  # Bucket open time, epoch ms
    symbol: str = ""
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @field_validator('symbol', mode='before')
    @classmethod
    def uppercase_symbol(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        return _epoch_ms(v)

    def update(self, price: float, quantity: float = 0.0):
        """Update bar with new tick (mutates in place)"""
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.volume += quantity


# =============================================================================
# API Response Models
# =============================================================================

class IngestionResult(BaseModel):
    """Result of data ingestion"""
    success: bool = True
    count: int = 0
    errors: int = 0
    symbols: List[str] = []
    message: str = ""


# =============================================================================
# Converters: External to Internal
# =============================================================================

def _first_present(data: dict, keys, default=None):
    """First value under any of keys that is neither missing nor NaN; 0 counts"""
    for key in keys:
        value = data.get(key)
        if value is not None and not pd.isna(value):
            return value
    return default


def to_tick(data: dict) -> Tick:
    """
    Convert external data format to Tick.

    This is the NORMALIZATION POINT.
    All external formats go through here.

    Handles:
    - timestamp/ts/time field variants
    - quantity/size/qty/volume field variants
    """
    ts = _first_present(data, ('timestamp', 'ts', 'time'))
    quantity = _first_present(data, ('quantity', 'size', 'qty', 'volume'), 0.0)

    return Tick(
        timestamp=ts,
        symbol=data['symbol'],
        price=float(data['price']),
        quantity=float(quantity),
    )


def to_ohlc_bar(data: dict) -> OHLCBar:
    """Convert external OHLC data to OHLCBar; a blank volume becomes 0"""
    ts = _first_present(data, ('timestamp', 'ts', 'time'))

    return OHLCBar(
        timestamp=ts,
        symbol=data.get('symbol', ''),
        open=float(data['open']),
        high=float(data['high']),
        low=float(data['low']),
        close=float(data['close']),
        volume=float(_first_present(data, ('volume',), 0.0)),
    )
