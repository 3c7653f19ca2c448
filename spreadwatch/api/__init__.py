"""
API Routers
"""
from .upload import router as upload_router
from .data import router as data_router
from .analytics import router as analytics_router
from .live import router as live_router
from .alerts import router as alerts_router
from .export import router as export_router

__all__ = [
    "upload_router",
    "data_router",
    "analytics_router",
    "live_router",
    "alerts_router",
    "export_router",
]
