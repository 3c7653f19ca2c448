"""
Settings
Runtime configuration for the analytics service.

Values arrive already validated: pydantic enforces the bounds below and the
service never re-checks them downstream.

Environment overrides:
    SPREADWATCH_SYMBOLS=BTCUSDT,ETHUSDT
    SPREADWATCH_TIMEFRAME=1m
    SPREADWATCH_ROLLING_WINDOW=20
    SPREADWATCH_REGRESSION_METHOD=ols
    SPREADWATCH_DB_PATH=data/spreadwatch.db
    SPREADWATCH_AUTO_START=1
    SPREADWATCH_LOG_LEVEL=INFO
"""

import os
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator


RegressionMethod = Literal["ols", "huber", "theil-sen", "kalman"]
TimeFrame = Literal["1s", "1m", "5m"]

ENV_PREFIX = "SPREADWATCH_"


class Settings(BaseModel):
    symbols: List[str] = Field(default_factory=lambda: ["BTCUSDT", "ETHUSDT"])
    timeframe: TimeFrame = "1m"
    rolling_window: int = Field(default=20, ge=10, le=100)
    regression_method: RegressionMethod = "ols"

    # Recompute cycle
    recompute_interval_ms: int = Field(default=500, gt=0)
    buffer_capacity: int = Field(default=1000, gt=0)
    min_samples: int = Field(default=20, ge=2)
    adf_min_length: int = Field(default=30, ge=3)

    # Collaborators
    db_path: str = "data/spreadwatch.db"
    auto_start: bool = True
    log_level: str = "INFO"

    @field_validator("symbols", mode="before")
    @classmethod
    def normalize_symbols(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return [s.strip().upper() for s in v if s and s.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from SPREADWATCH_* environment variables"""
        overrides = {}
        for name in cls.model_fields:
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                overrides[name] = raw
        return cls(**overrides)
