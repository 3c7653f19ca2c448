import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Callable, Any
from collections import deque

from .models import (
    Alert,
    AlertEvent,
    AlertType,
    AlertCondition,
)

if TYPE_CHECKING:
    from spreadwatch.analytics.models import AnalyticsSnapshot
    from spreadwatch.core.models import Tick

logger = logging.getLogger(__name__)


class AlertEngine:
    def __init__(self, history_size: int = 100, queue_size: int = 1000):
        self._alerts: Dict[str, Alert] = {}
        self._last_values: Dict[str, float] = {}
        self._event_queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._history: deque = deque(maxlen=history_size)
        self._callbacks: List[Callable[[AlertEvent], None]] = []
        self._stats = {
            "evaluations": 0,
            "triggers": 0,
            "skipped": 0,
            "start_time": datetime.now()
        }

    def add_alert(self, alert: Alert) -> Alert:
        self._alerts[alert.id] = alert
        return alert

    def remove_alert(self, alert_id: str) -> bool:
        if alert_id in self._alerts:
            del self._alerts[alert_id]
            self._last_values.pop(alert_id, None)
            return True
        return False

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def get_alerts(self) -> List[Alert]:
        return list(self._alerts.values())

    def toggle_alert(self, alert_id: str) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        if alert is None:
            return None
        alert.toggle()
        self._last_values.pop(alert_id, None)
        return alert

    def evaluate(
        self,
        snapshot: "AnalyticsSnapshot",
        latest_ticks: Dict[str, "Tick"] = None,
        now: int = None
    ) -> List[AlertEvent]:
        """
        Check every armed alert against the latest analytics.

        Z-score alerts read the snapshot's last z-score. Price and volume
        alerts go beyond z-score-only alerting and are evaluated in the same
        pass: they read the latest tick of the alert's symbol, or of the first
        tracked symbol when none is set.

        Returns the events fired by this call. Alerts whose series is not
        available yet are skipped.
        """
        triggered = []
        latest_ticks = latest_ticks or {}
        self._stats["evaluations"] += 1

        for alert in self._alerts.values():
            if not alert.armed:
                continue

            value = self._get_value(alert, snapshot, latest_ticks)
            if value is None:
                self._stats["skipped"] += 1
                continue

            previous = self._last_values.get(alert.id)
            self._last_values[alert.id] = value

            if not self._evaluate_condition(alert, value, previous):
                continue

            alert.fire(now)
            event = AlertEvent.from_alert(alert, value)
            triggered.append(event)
            self._history.append(event)
            self._stats["triggers"] += 1
            logger.info("Alert %s triggered: %s (value %.4f)", alert.id, alert.message, value)

            try:
                self._event_queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("Alert event queue full, dropping %s", event.id)

            for callback in self._callbacks:
                try:
                    callback(event)
                except Exception:
                    logger.exception("Alert callback failed for %s", alert.id)

        return triggered

    def _get_value(
        self,
        alert: Alert,
        snapshot: "AnalyticsSnapshot",
        latest_ticks: Dict[str, "Tick"]
    ) -> Optional[float]:
        if alert.type is AlertType.Z_SCORE:
            return snapshot.last_z_score if snapshot is not None else None

        symbol = alert.symbol
        if symbol is None and snapshot is not None and snapshot.symbols:
            symbol = snapshot.symbols[0]
        tick = latest_ticks.get(symbol) if symbol else None
        if tick is None:
            return None

        if alert.type is AlertType.PRICE:
            return tick.price
        return tick.quantity

    def _evaluate_condition(
        self,
        alert: Alert,
        value: float,
        previous: Optional[float]
    ) -> bool:
        threshold = alert.threshold
        if alert.condition is AlertCondition.ABOVE:
            return value > threshold
        elif alert.condition is AlertCondition.BELOW:
            return value < threshold
        elif alert.condition is AlertCondition.CROSSES:
            if previous is None:
                return False
            return (previous < threshold <= value) or (previous > threshold >= value)
        return False

    async def get_event(self, timeout: float = None) -> Optional[AlertEvent]:
        try:
            if timeout:
                return await asyncio.wait_for(self._event_queue.get(), timeout)
            return await self._event_queue.get()
        except asyncio.TimeoutError:
            return None

    def get_history(self, limit: int = 50) -> List[AlertEvent]:
        history = list(self._history)
        history.reverse()
        return history[:limit]

    def on_alert(self, callback: Callable[[AlertEvent], None]) -> None:
        self._callbacks.append(callback)

    def clear_history(self) -> None:
        self._history.clear()

    def stats(self) -> Dict[str, Any]:
        uptime = (datetime.now() - self._stats["start_time"]).total_seconds()
        return {
            **self._stats,
            "start_time": self._stats["start_time"].isoformat(),
            "uptime_seconds": round(uptime, 2),
            "alerts_count": len(self._alerts),
            "active_alerts": sum(1 for a in self._alerts.values() if a.active),
            "triggered_alerts": sum(1 for a in self._alerts.values() if a.triggered),
            "history_size": len(self._history),
            "queue_size": self._event_queue.qsize()
        }
