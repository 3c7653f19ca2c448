import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from spreadwatch.api import (
    upload_router,
    data_router,
    analytics_router,
    alerts_router,
    export_router,
    live_router,
)
from spreadwatch.config import Settings
from spreadwatch.core.interfaces import TickSource, TickStore
from spreadwatch.core.orchestrator import RecomputeOrchestrator
from spreadwatch.db import SQLiteStorage
from spreadwatch.services import BinanceTickSource

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_services(
    app: FastAPI,
    settings: Settings = None,
    source: TickSource = None,
    store: TickStore = None
) -> RecomputeOrchestrator:
    """Wire the tick source, store and orchestrator onto app.state"""
    settings = settings or Settings.from_env()
    source = source if source is not None else BinanceTickSource()
    store = store if store is not None else SQLiteStorage(settings.db_path)

    orchestrator = RecomputeOrchestrator(settings, source=source, store=store)
    app.state.settings = settings
    app.state.feed = source
    app.state.store = store
    app.state.orchestrator = orchestrator
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "orchestrator", None) is None:
        build_services(app)

    settings: Settings = app.state.settings
    orchestrator: RecomputeOrchestrator = app.state.orchestrator
    configure_logging(settings.log_level)

    if settings.auto_start:
        orchestrator.start()
        orchestrator.connect(settings.symbols)
        logger.info("Auto-started %s", "/".join(settings.symbols))

    yield

    await orchestrator.stop()
    await run_in_threadpool(orchestrator.disconnect)
    orchestrator.close()

    store = app.state.store
    if hasattr(store, "close"):
        store.close()


def create_app(
    settings: Settings = None,
    source: TickSource = None,
    store: TickStore = None
) -> FastAPI:
    """
    Build the API app.

    With no arguments everything is constructed at startup from the
    environment; passing any collaborator wires the services immediately.
    """
    app = FastAPI(
        title="SpreadWatch API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(upload_router, prefix="/api")
    app.include_router(data_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")
    app.include_router(alerts_router, prefix="/api")
    app.include_router(export_router, prefix="/api")
    app.include_router(live_router, prefix="/api")

    if settings is not None or source is not None or store is not None:
        build_services(app, settings, source, store)

    @app.get("/")
    async def root():
        return {
            "name": "SpreadWatch API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        orchestrator: RecomputeOrchestrator = app.state.orchestrator
        stats = orchestrator.stats()
        feed = app.state.feed
        feed_stats = getattr(feed, "stats", None)

        return {
            "status": "healthy",
            "orchestrator": {
                "ticks_ingested": stats["ticks_ingested"],
                "cycles": stats["cycles"],
                "errors": stats["errors"],
                "symbols": stats["symbols"],
                "has_snapshot": stats["has_snapshot"],
                "uptime_seconds": stats["uptime_seconds"]
            },
            "live_feed": feed_stats.to_dict() if feed_stats is not None else None
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("spreadwatch.main:app", host="0.0.0.0", port=8000, reload=True)
