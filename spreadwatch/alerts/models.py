"""
Alert Models
Data structures for alert rules, trigger state, and events.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum
import uuid


class AlertType(str, Enum):
    """Series an alert watches"""
    Z_SCORE = "z-score"
    PRICE = "price"
    VOLUME = "volume"


class AlertCondition(str, Enum):
    """Alert condition operators"""
    ABOVE = "above"
    BELOW = "below"
    CROSSES = "crosses"


class AlertLatch(str, Enum):
    """
    Trigger latch.

    IDLE → TRIGGERED when the condition fires.
    TRIGGERED → RESET on an explicit toggle; RESET is armed like IDLE.
    A triggered alert never clears on its own.
    """
    IDLE = "idle"
    TRIGGERED = "triggered"
    RESET = "reset"


def _now_ms() -> int:
    return int(datetime.now().timestamp() * 1000)


@dataclass
class Alert:
    """
    User-defined alert.

    Example:
        "Alert me when z-score above 2.0"
    """
    id: str
    type: AlertType
    condition: AlertCondition
    threshold: float
    active: bool = True
    message: str = ""
    symbol: Optional[str] = None
    latch: AlertLatch = AlertLatch.IDLE
    triggered_at: Optional[int] = None  # epoch ms
    created_at: int = field(default_factory=_now_ms)

    def __post_init__(self):
        if not self.id:
            self.id = f"alert_{uuid.uuid4().hex[:8]}"
        if self.symbol:
            self.symbol = self.symbol.upper()
        if not self.message:
            self.message = f"{self.type.value} {self.condition.value} {self.threshold}"

    @property
    def triggered(self) -> bool:
        return self.latch is AlertLatch.TRIGGERED

    @property
    def armed(self) -> bool:
        return self.active and not self.triggered

    def fire(self, at: int = None) -> None:
        """Latch the alert"""
        self.latch = AlertLatch.TRIGGERED
        self.triggered_at = at if at is not None else _now_ms()

    def toggle(self) -> None:
        """Flip active and release the latch"""
        self.active = not self.active
        if self.latch is AlertLatch.TRIGGERED:
            self.latch = AlertLatch.RESET

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "condition": self.condition.value,
            "threshold": self.threshold,
            "active": self.active,
            "triggered": self.triggered,
            "latch": self.latch.value,
            "message": self.message,
            "symbol": self.symbol,
            "triggered_at": self.triggered_at,
            "created_at": self.created_at,
        }


@dataclass
class AlertEvent:
    """
    A triggered alert event.

    This is what gets streamed to clients and kept in history.
    """
    id: str
    alert_id: str
    timestamp: int
    type: str
    condition: str
    value: float
    threshold: float
    message: str

    def __post_init__(self):
        if not self.id:
            self.id = f"evt_{uuid.uuid4().hex[:8]}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "alert_id": self.alert_id,
            "timestamp": self.timestamp,
            "type": self.type,
            "condition": self.condition,
            "value": round(self.value, 4),
            "threshold": self.threshold,
            "message": self.message,
        }

    @classmethod
    def from_alert(cls, alert: Alert, value: float) -> "AlertEvent":
        """Create event from a freshly triggered alert"""
        return cls(
            id="",
            alert_id=alert.id,
            timestamp=alert.triggered_at or _now_ms(),
            type=alert.type.value,
            condition=alert.condition.value,
            value=value,
            threshold=alert.threshold,
            message=alert.message,
        )
