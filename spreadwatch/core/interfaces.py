"""
Collaborator Interfaces
What the orchestrator needs from the transport and the store.

Hosts construct concrete implementations (BinanceTickSource, SQLiteStorage)
and hand them to the orchestrator; tests pass fakes.
"""

from typing import Callable, List, Protocol

from .models import Tick, OHLCBar

TickCallback = Callable[[Tick], None]
Unsubscribe = Callable[[], None]


class TickSource(Protocol):
    def subscribe(self, callback: TickCallback) -> Unsubscribe:
        ...

    def connect(self, symbols: List[str]) -> None:
        ...

    def disconnect(self) -> None:
        ...


class TickStore(Protocol):
    def append_tick(self, tick: Tick) -> None:
        ...

    def append_ohlc_batch(self, bars: List[OHLCBar]) -> int:
        ...

    def clear_all(self) -> None:
        ...
