"""
Live Feed Service
Streams Binance trades and hands them to subscribers as Ticks.

Usage:
    from spreadwatch.services import BinanceTickSource

    feed = BinanceTickSource()
    unsubscribe = feed.subscribe(orchestrator.ingest)
    feed.connect(["BTCUSDT", "ETHUSDT"])
    # Ticks flow to every subscriber from the feed thread
    feed.disconnect()
"""

import asyncio
import json
import logging
import threading
from datetime import datetime
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
import websockets

from spreadwatch.core.interfaces import TickCallback, Unsubscribe
from spreadwatch.core.models import Tick

logger = logging.getLogger(__name__)

BINANCE_WS_URL = "wss://stream.binance.com:9443/stream"
RECONNECT_BASE_DELAY = 1.0
MAX_RECONNECT_ATTEMPTS = 5


def build_stream_url(symbols: List[str], base_url: str = BINANCE_WS_URL) -> str:
    """Combined trade stream URL for the given symbols"""
    streams = "/".join(f"{s.lower()}@trade" for s in symbols)
    return f"{base_url}?streams={streams}"


def reconnect_delay(attempt: int, base_delay: float = RECONNECT_BASE_DELAY) -> float:
    """Seconds to wait before reconnect attempt N (1-based)"""
    return base_delay * 2 ** (attempt - 1)


def parse_trade(message: str) -> Optional[Tick]:
    """
    Combined-stream trade payload → Tick.

    Returns None for non-trade payloads. Raises ValueError/KeyError on
    malformed trades.
    """
    payload = json.loads(message)
    data = payload.get('data', payload)
    if data.get('e') != 'trade':
        return None

    return Tick(
        timestamp=int(data['T']),
        symbol=data['s'],
        price=float(data['p']),
        quantity=float(data['q']),
    )


@dataclass
class FeedStats:
    """Live feed statistics"""
    is_running: bool = False
    symbols: List[str] = field(default_factory=list)
    ticks_received: int = 0
    ticks_per_second: float = 0.0
    last_tick_time: Optional[int] = None
    connected_at: Optional[datetime] = None
    reconnect_attempts: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "symbols": self.symbols,
            "ticks_received": self.ticks_received,
            "ticks_per_second": round(self.ticks_per_second, 1),
            "last_tick_time": self.last_tick_time,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "uptime_seconds": (datetime.now() - self.connected_at).total_seconds() if self.connected_at else 0,
            "reconnect_attempts": self.reconnect_attempts,
            "errors": self.errors
        }


class _FeedConnection:
    """
    State owned by a single connect() call.

    Each connection gets its own loop, thread, stats and stop flag, so a
    connection that is still winding down can never touch its successor.
    """

    def __init__(self, symbols: List[str], url: str, name: str):
        self.symbols = symbols
        self.url = url
        self.stats = FeedStats(is_running=True, symbols=symbols, connected_at=datetime.now())
        self.tick_times: List[float] = []
        self.loop = asyncio.new_event_loop()
        self.stopped = threading.Event()
        self.task: Optional[asyncio.Task] = None
        self.thread: Optional[threading.Thread] = None
        self.name = name

    def request_stop(self) -> None:
        """Thread-safe: flag the stop and cancel the stream task on its loop"""
        self.stopped.set()
        self.stats.is_running = False
        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self._cancel)
        except RuntimeError:
            # Loop closed between the check and the call; the thread is done
            logger.debug("Feed loop for %s already closed", self.name)

    def _cancel(self) -> None:
        if self.task is not None:
            self.task.cancel()


class BinanceTickSource:
    """
    Binance WebSocket tick source.

    Every connect() starts a fresh connection on its own thread and event
    loop and calls every subscriber with each trade. Dropped connections
    are retried with exponential backoff; the feed gives up after
    MAX_RECONNECT_ATTEMPTS consecutive failures.

    connect() never waits for the previous connection: it is cancelled and
    left to exit on its own thread. disconnect() waits up to join_timeout
    for the thread, so call it off the event loop.
    """

    def __init__(
        self,
        base_url: str = BINANCE_WS_URL,
        base_delay: float = RECONNECT_BASE_DELAY,
        max_attempts: int = MAX_RECONNECT_ATTEMPTS,
        join_timeout: float = 5.0
    ):
        self.base_url = base_url
        self.base_delay = base_delay
        self.max_attempts = max_attempts
        self.join_timeout = join_timeout
        self._lock = threading.Lock()
        self._conn: Optional[_FeedConnection] = None
        self._connections = 0
        self._callbacks: List[TickCallback] = []
        self._stats = FeedStats()

    @property
    def is_running(self) -> bool:
        conn = self._conn
        return conn is not None and not conn.stopped.is_set()

    @property
    def stats(self) -> FeedStats:
        conn = self._conn
        return conn.stats if conn is not None else self._stats

    def subscribe(self, callback: TickCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def connect(self, symbols: List[str]) -> None:
        """Start streaming trades for the given symbols, replacing any current stream"""
        symbols = [s.strip().upper() for s in symbols if s and s.strip()]
        if not symbols:
            raise ValueError("No symbols provided")

        with self._lock:
            previous = self._conn
            self._connections += 1
            conn = _FeedConnection(
                symbols,
                build_stream_url(symbols, self.base_url),
                name=f"binance-feed-{self._connections}"
            )
            self._conn = conn

        if previous is not None:
            previous.request_stop()
            self._stats = previous.stats

        conn.thread = threading.Thread(
            target=self._run_connection,
            args=(conn,),
            name=conn.name,
            daemon=True
        )
        conn.thread.start()
        logger.info("Live feed started for %s", ", ".join(symbols))

    def disconnect(self) -> None:
        """Stop the feed and wait up to join_timeout for its thread"""
        with self._lock:
            conn = self._conn
            self._conn = None

        if conn is None:
            return

        conn.request_stop()
        self._stats = conn.stats

        thread = conn.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.join_timeout)
            if thread.is_alive():
                logger.warning("Feed thread %s still running after %.1fs", conn.name, self.join_timeout)

        logger.info("Live feed stopped after %d ticks", conn.stats.ticks_received)

    def _run_connection(self, conn: _FeedConnection):
        """Thread target: run one connection's stream on its own loop"""
        asyncio.set_event_loop(conn.loop)

        try:
            conn.task = conn.loop.create_task(self._stream(conn))
            conn.loop.run_until_complete(conn.task)
        except asyncio.CancelledError:
            logger.debug("Feed %s cancelled", conn.name)
        except Exception:
            conn.stats.errors += 1
            logger.exception("Live feed loop crashed")
        finally:
            conn.loop.close()
            conn.stopped.set()
            conn.stats.is_running = False

    async def _stream(self, conn: _FeedConnection):
        """Read the combined stream, reconnecting with backoff"""
        attempt = 0

        while not conn.stopped.is_set():
            try:
                async with websockets.connect(conn.url) as ws:
                    attempt = 0
                    logger.info("Connected to %s", conn.url)

                    async for message in ws:
                        if conn.stopped.is_set():
                            break
                        self._handle_message(conn, message)
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
                conn.stats.errors += 1
                logger.warning("Live feed connection error: %s", e)

            if conn.stopped.is_set():
                break

            attempt += 1
            conn.stats.reconnect_attempts += 1
            if attempt > self.max_attempts:
                logger.error("Live feed giving up after %d reconnect attempts", self.max_attempts)
                break

            delay = reconnect_delay(attempt, self.base_delay)
            logger.warning("Reconnecting in %.1fs (attempt %d/%d)", delay, attempt, self.max_attempts)
            await asyncio.sleep(delay)

    def _handle_message(self, conn: _FeedConnection, message: str):
        """Parse one message and fan it out"""
        try:
            tick = parse_trade(message)
        except (ValueError, KeyError, TypeError) as e:
            conn.stats.errors += 1
            logger.warning("Dropping malformed trade message: %s", e)
            return

        if tick is None or conn.stopped.is_set():
            return

        for callback in list(self._callbacks):
            try:
                callback(tick)
            except Exception:
                logger.exception("Tick subscriber failed for %s", tick.symbol)

        conn.stats.ticks_received += 1
        conn.stats.last_tick_time = tick.timestamp

        now = datetime.now().timestamp()
        conn.tick_times.append(now)
        conn.tick_times = [t for t in conn.tick_times if now - t < 1.0]
        conn.stats.ticks_per_second = len(conn.tick_times)
