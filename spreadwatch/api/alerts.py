"""
Alerts API
Endpoints for managing alerts and streaming events.

Endpoints:
    POST   /api/alerts              → Create alert
    GET    /api/alerts              → List all alerts
    GET    /api/alerts/{id}         → Get alert by ID
    DELETE /api/alerts/{id}         → Delete alert
    POST   /api/alerts/{id}/toggle  → Flip active, release a triggered latch
    GET    /api/alerts/history      → Get alert history
    DELETE /api/alerts/history      → Clear alert history
    GET    /api/alerts/stream       → SSE stream for real-time alerts
    GET    /api/alerts/stats        → Engine statistics
"""

import json
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict
from typing import Optional

from spreadwatch.alerts import (
    AlertEngine,
    Alert,
    AlertType,
    AlertCondition,
)

from .deps import get_alert_engine

router = APIRouter(prefix="/alerts", tags=["Alerts"])


# =============================================================================
# Request Models
# =============================================================================

class CreateAlertRequest(BaseModel):
    """Request body for creating an alert"""
    type: AlertType
    condition: AlertCondition
    threshold: float
    symbol: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "z-score",
                "condition": "above",
                "threshold": 2.0,
                "message": "Spread stretched"
            }
        }
    )


# =============================================================================
# Alert Management
# =============================================================================

@router.post("", status_code=201)
async def create_alert(
    request: CreateAlertRequest,
    engine: AlertEngine = Depends(get_alert_engine)
):
    """
    Create a new alert.

    Types: z-score, price, volume
    Conditions: above, below, crosses
    """
    alert = engine.add_alert(Alert(
        id="",
        type=request.type,
        condition=request.condition,
        threshold=request.threshold,
        symbol=request.symbol,
        message=request.message or "",
    ))

    return {
        "message": "Alert created",
        "alert": alert.to_dict()
    }


@router.get("")
async def list_alerts(engine: AlertEngine = Depends(get_alert_engine)):
    """Get all alerts"""
    alerts = engine.get_alerts()

    return {
        "count": len(alerts),
        "alerts": [a.to_dict() for a in alerts]
    }


# =============================================================================
# Alert History
# =============================================================================

@router.get("/history")
async def get_history(
    limit: int = Query(default=50, le=200),
    engine: AlertEngine = Depends(get_alert_engine)
):
    """Get recent alert history, newest first"""
    history = engine.get_history(limit)

    return {
        "count": len(history),
        "alerts": [e.to_dict() for e in history]
    }


@router.delete("/history")
async def clear_history(engine: AlertEngine = Depends(get_alert_engine)):
    """Clear alert history"""
    engine.clear_history()

    return {"message": "Alert history cleared"}


@router.get("/stats")
async def get_stats(engine: AlertEngine = Depends(get_alert_engine)):
    """Get alert engine statistics"""
    return engine.stats()


# =============================================================================
# SSE Stream
# =============================================================================

@router.get("/stream")
async def stream_alerts(engine: AlertEngine = Depends(get_alert_engine)):
    """
    Server-Sent Events stream for real-time alerts.

    Connect via EventSource in browser:
        const es = new EventSource('/api/alerts/stream');
        es.onmessage = (e) => console.log(JSON.parse(e.data));
    """

    async def event_generator():
        yield f"data: {json.dumps({'type': 'connected', 'message': 'Alert stream connected'})}\n\n"

        while True:
            # Wait for event with timeout (for keepalive)
            event = await engine.get_event(timeout=30.0)

            if event:
                yield f"data: {json.dumps(event.to_dict())}\n\n"
            else:
                yield ": keepalive\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"  # Disable nginx buffering
        }
    )


# =============================================================================
# Single Alert
# =============================================================================

@router.get("/{alert_id}")
async def get_alert(alert_id: str, engine: AlertEngine = Depends(get_alert_engine)):
    """Get a specific alert"""
    alert = engine.get_alert(alert_id)

    if not alert:
        raise HTTPException(404, f"Alert not found: {alert_id}")

    return {"alert": alert.to_dict()}


@router.delete("/{alert_id}")
async def delete_alert(alert_id: str, engine: AlertEngine = Depends(get_alert_engine)):
    """Delete an alert"""
    if not engine.remove_alert(alert_id):
        raise HTTPException(404, f"Alert not found: {alert_id}")

    return {"message": f"Alert {alert_id} deleted"}


@router.post("/{alert_id}/toggle")
async def toggle_alert(alert_id: str, engine: AlertEngine = Depends(get_alert_engine)):
    """Flip an alert's active flag; a triggered alert is released"""
    alert = engine.toggle_alert(alert_id)

    if alert is None:
        raise HTTPException(404, f"Alert not found: {alert_id}")

    return {"alert": alert.to_dict()}
