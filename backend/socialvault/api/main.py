"""
SocialVault API Application Entry Point

FastAPI application setup with routers, exception handlers and lifecycle
management.

Application Architecture:
=========================
┌─────────────────────────────────────────────────────────────────────────────┐
│                           SOCIALVAULT API                                   │
├─────────────────────────────────────────────────────────────────────────────┤
│   Middleware:   CORS, exception handlers                                    │
│                              │                                              │
│                              ▼                                              │
│   Routers:      Health │ Uploads │ Scrape │ Jobs │ Backups │ Shared         │
│                              │                                              │
│                              ▼                                              │
│   Dependencies: Database │ Auth │ Services │ Adapters (S3, SQS, SES)        │
└─────────────────────────────────────────────────────────────────────────────┘

The API only creates and reads job rows and publishes queue events; all
long-running work happens in socialvault.worker.

Lifecycle:
==========
1. Application starts → logging configured, database pool initialized
2. Application serves requests
3. Application stops → database connections closed

Usage:
======
    uvicorn socialvault.api.main:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from socialvault.config.settings import settings
from socialvault.shared.db import init_db, close_db
from socialvault.shared.core.logging import logger, setup_logging
from socialvault.api.middleware import setup_exception_handlers
from socialvault.api.routes import register_routes


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Startup: configure logging, initialize the database pool.
    Shutdown: close database connections.
    """
    # ═══════════════════════════════════════════════════════════════════════════
    # STARTUP
    # ═══════════════════════════════════════════════════════════════════════════
    setup_logging()
    logger.info(
        "Starting SocialVault API",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
    )

    await init_db()
    logger.info("SocialVault API started successfully")

    yield

    # ═══════════════════════════════════════════════════════════════════════════
    # SHUTDOWN
    # ═══════════════════════════════════════════════════════════════════════════
    logger.info("Shutting down SocialVault API")
    await close_db()
    logger.info("SocialVault API shutdown complete")


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Backups of Twitter/X accounts from archives and snapshots",
        version=settings.APP_VERSION,
        # Only show docs in development
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # ═══════════════════════════════════════════════════════════════════════════
    # MIDDLEWARE
    # ═══════════════════════════════════════════════════════════════════════════

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ═══════════════════════════════════════════════════════════════════════════
    # EXCEPTION HANDLERS
    # ═══════════════════════════════════════════════════════════════════════════

    setup_exception_handlers(app)

    # ═══════════════════════════════════════════════════════════════════════════
    # ROUTES
    # ═══════════════════════════════════════════════════════════════════════════

    register_routes(app)

    return app


app = create_application()
