"""
Router Dependencies
Shared objects live on app.state; routers pull them in with Depends.
"""

from fastapi import Request

from spreadwatch.alerts import AlertEngine
from spreadwatch.core.orchestrator import RecomputeOrchestrator


def get_orchestrator(request: Request) -> RecomputeOrchestrator:
    return request.app.state.orchestrator


def get_alert_engine(request: Request) -> AlertEngine:
    return request.app.state.orchestrator.alerts


def get_feed(request: Request):
    """Live tick source, or None when the app runs without one"""
    return getattr(request.app.state, "feed", None)


def get_store(request: Request):
    """Persistent store, or None when the app runs without one"""
    return getattr(request.app.state, "store", None)
