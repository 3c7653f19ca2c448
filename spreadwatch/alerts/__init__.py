"""
Alert System
Threshold alerts evaluated after every recompute cycle.

Structure:
    alerts/
    ├── models.py    → Alert, AlertLatch, AlertEvent
    └── engine.py    → AlertEngine (evaluation + state)

Usage:
    from spreadwatch.alerts import AlertEngine, Alert, AlertType, AlertCondition

    engine = AlertEngine()
    engine.add_alert(Alert(
        id="",
        type=AlertType.Z_SCORE,
        condition=AlertCondition.ABOVE,
        threshold=2.0,
    ))

    # Evaluate (called by the orchestrator after publishing a snapshot)
    triggered = engine.evaluate(snapshot, latest_ticks)

    # Triggered alerts stay latched until toggled
    engine.toggle_alert(alert_id)
"""

from .models import (
    Alert,
    AlertEvent,
    AlertType,
    AlertCondition,
    AlertLatch,
)

from .engine import AlertEngine

__all__ = [
    # Models
    "Alert",
    "AlertEvent",
    "AlertType",
    "AlertCondition",
    "AlertLatch",
    # Engine
    "AlertEngine",
]
