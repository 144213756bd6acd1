import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .core.config import settings
from .core.log import setup_logging
from .db.database import init_db
from .api.routes import router as api_router
from .api.websocket import router as ws_router, sync_callback
from .sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging(settings.LOG_LEVEL, settings.DEBUG)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()
    logger.info("History database initialized")

    orchestrator: SyncOrchestrator = app.state.orchestrator
    orchestrator.register_callback(sync_callback)

    await orchestrator.start_background_sync()
    logger.info(f"Background printer sync started (interval: {orchestrator.sync_interval}s)")

    yield

    logger.info("Shutting down...")
    await orchestrator.stop_background_sync()
    orchestrator.unregister_callback(sync_callback)


def create_app(orchestrator: SyncOrchestrator = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Printer network discovery and IP resolution service",
        lifespan=lifespan
    )
    app.state.orchestrator = orchestrator or SyncOrchestrator()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api", tags=["API"])
    app.include_router(ws_router, tags=["WebSocket"])

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health(request: Request):
        orchestrator = request.app.state.orchestrator
        return {
            "status": "healthy",
            "scheduler_running": orchestrator.is_running,
            "syncing": orchestrator.is_syncing,
        }

    return app


app = create_app()
