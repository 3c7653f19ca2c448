"""
SQLite Storage
Persistent storage layer.

Responsibilities:
- Write ticks and OHLC bars to database
- Read historical data
- Handle schema

NOT responsible for:
- Validation (done upstream)
- Analytics (done elsewhere)
- Deciding what to persist (the orchestrator calls in)
"""

import logging
import queue
import sqlite3
import threading
from pathlib import Path
from typing import List, Dict, Optional

from spreadwatch.core.models import Tick, OHLCBar

logger = logging.getLogger(__name__)

WRITE_BATCH_SIZE = 500


class SQLiteStorage:
    """
    SQLite persistence for market data.

    Tables:
        - ticks: Raw tick data
        - ohlc: Uploaded OHLC bars

    Timestamps are stored as epoch milliseconds. Each call opens its own
    connection. Single ticks are queued and written in batches by a
    background thread, so the feed thread never waits on disk; reads
    flush the queue first.
    """

    def __init__(self, db_path: str = "data/spreadwatch.db", batch_size: int = WRITE_BATCH_SIZE):
        self.db_path = db_path
        self.batch_size = batch_size
        self._write_lock = threading.Lock()
        self._ensure_directory()
        self._init_schema()

        self._pending: "queue.Queue[Optional[Tick]]" = queue.Queue()
        self._write_errors = 0
        self._closed = False
        self._writer = threading.Thread(target=self._drain_ticks, name="sqlite-tick-writer", daemon=True)
        self._writer.start()

    def _ensure_directory(self):
        """Create data directory"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=5.0)

    def _init_schema(self):
        """Initialize database schema"""
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS ticks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    price REAL NOT NULL,
                    quantity REAL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_ticks_symbol_ts
                ON ticks(symbol, timestamp);

                CREATE TABLE IF NOT EXISTS ohlc (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    open REAL NOT NULL,
                    high REAL NOT NULL,
                    low REAL NOT NULL,
                    close REAL NOT NULL,
                    volume REAL DEFAULT 0,
                    UNIQUE(symbol, timestamp)
                );

                CREATE INDEX IF NOT EXISTS idx_ohlc_symbol_ts
                ON ohlc(symbol, timestamp);
            """)
        logger.info("SQLite storage ready at %s", self.db_path)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def append_tick(self, tick: Tick) -> None:
        """Queue a tick for the background writer; returns immediately"""
        if self._closed:
            raise RuntimeError("Storage is closed")
        self._pending.put(tick)

    def flush(self) -> None:
        """Block until every queued tick has been written"""
        if self._writer.is_alive():
            self._pending.join()

    def close(self) -> None:
        """Write what is queued and stop the writer thread"""
        if self._closed:
            return
        self._closed = True
        self._pending.put(None)
        self._writer.join(timeout=5.0)

    def _drain_ticks(self):
        """Writer thread: take up to batch_size queued ticks per insert"""
        while True:
            batch = [self._pending.get()]
            while len(batch) < self.batch_size:
                try:
                    batch.append(self._pending.get_nowait())
                except queue.Empty:
                    break

            ticks = [t for t in batch if t is not None]
            try:
                if ticks:
                    self.append_ticks(ticks)
            except Exception:
                self._write_errors += len(ticks)
                logger.exception("Failed to write %d queued ticks", len(ticks))
            finally:
                for _ in batch:
                    self._pending.task_done()

            if len(ticks) < len(batch):
                return

    def append_ticks(self, ticks: List[Tick]) -> int:
        """Save tick events to database"""
        if not ticks:
            return 0

        with self._write_lock, self._connect() as conn:
            conn.executemany(
                """INSERT INTO ticks (symbol, timestamp, price, quantity)
                   VALUES (?, ?, ?, ?)""",
                [(t.symbol, t.timestamp, t.price, t.quantity) for t in ticks]
            )
            return len(ticks)

    def append_ohlc_batch(self, bars: List[OHLCBar]) -> int:
        """Save OHLC bars with upsert"""
        if not bars:
            return 0

        with self._write_lock, self._connect() as conn:
            conn.executemany(
                """INSERT OR REPLACE INTO ohlc
                   (symbol, timestamp, open, high, low, close, volume)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                [
                    (b.symbol, b.timestamp, b.open, b.high, b.low, b.close, b.volume)
                    for b in bars
                ]
            )
            return len(bars)

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_ticks(self, symbol: str, limit: int = 10000) -> List[Tick]:
        """Read ticks from storage, oldest first"""
        self.flush()
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """SELECT symbol, timestamp, price, quantity FROM ticks
                   WHERE symbol = ?
                   ORDER BY timestamp DESC, id DESC LIMIT ?""",
                [symbol.upper(), limit]
            )
            rows = cursor.fetchall()

        return [
            Tick(
                symbol=row["symbol"],
                timestamp=row["timestamp"],
                price=row["price"],
                quantity=row["quantity"]
            )
            for row in reversed(rows)  # Chronological order
        ]

    def get_ohlc_bars(self, symbol: str, limit: int = 500) -> List[OHLCBar]:
        """Read OHLC bars from storage"""
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """SELECT * FROM ohlc
                   WHERE symbol = ?
                   ORDER BY timestamp DESC LIMIT ?""",
                [symbol.upper(), limit]
            )
            rows = cursor.fetchall()

        return [
            OHLCBar(
                symbol=row["symbol"],
                timestamp=row["timestamp"],
                open=row["open"],
                high=row["high"],
                low=row["low"],
                close=row["close"],
                volume=row["volume"]
            )
            for row in reversed(rows)
        ]

    def get_symbols(self) -> List[str]:
        """Get all symbols with data"""
        with self._connect() as conn:
            cursor = conn.execute(
                """SELECT DISTINCT symbol FROM ticks
                   UNION
                   SELECT DISTINCT symbol FROM ohlc
                   ORDER BY symbol"""
            )
            return [row[0] for row in cursor.fetchall()]

    def get_stats(self) -> Dict:
        """Get storage statistics"""
        self.flush()
        with self._connect() as conn:
            tick_count = conn.execute("SELECT COUNT(*) FROM ticks").fetchone()[0]
            ohlc_count = conn.execute("SELECT COUNT(*) FROM ohlc").fetchone()[0]

        return {
            "tick_count": tick_count,
            "ohlc_count": ohlc_count,
            "symbols": self.get_symbols(),
            "queued_ticks": self._pending.qsize(),
            "write_errors": self._write_errors,
            "db_path": self.db_path
        }

    # =========================================================================
    # Management
    # =========================================================================

    def clear_all(self) -> None:
        """Delete every stored tick and bar"""
        self.flush()
        with self._write_lock, self._connect() as conn:
            conn.execute("DELETE FROM ticks")
            conn.execute("DELETE FROM ohlc")
        logger.info("Cleared all stored market data")
