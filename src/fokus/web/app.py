"""FastAPI application serving the focus engine and the shared timer."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fokus import __version__
from fokus.core.config import Config, get_config
from fokus.focus import DatabaseRewardLedger, FocusEngine
from fokus.shared import MemoryHub, SharedTimerReconciler, build_store
from fokus.storage import SessionStore, init_database

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None, hub: MemoryHub | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``hub`` lets several apps share one in-process store when the shared
    timer backend is ``memory``.
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        # Startup
        logger.info("Starting Fokus API...")

        db = await init_database(config.db_path)

        engine = FocusEngine(
            config.focus,
            session_store=SessionStore(db),
            ledger=DatabaseRewardLedger(db),
        )
        reconciler = SharedTimerReconciler(build_store(config.shared, hub), config.shared)
        await reconciler.connect()

        app.state.config = config
        app.state.db = db
        app.state.engine = engine
        app.state.reconciler = reconciler

        yield

        # Shutdown
        await engine.reset()
        await reconciler.close()
        await db.close()
        logger.info("Fokus API shutdown complete")

    app = FastAPI(
        title="Fokus",
        description="Focus sessions and shared timer API",
        version=__version__,
        lifespan=lifespan,
    )

    # Add CORS middleware for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from fokus.web.routes import api

    app.include_router(api.router, prefix="/api")

    return app


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the web server."""
    import uvicorn

    config = get_config()
    host = host or config.web.host
    port = port or config.web.port

    logger.info(f"Starting API at http://{host}:{port}")

    uvicorn.run(
        "fokus.web.app:create_app",
        host=host,
        port=port,
        factory=True,
        log_level="info",
    )
