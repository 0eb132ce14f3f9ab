"""
Route Registration

Route Hierarchy:
================
    /health, /ready, /live  → Health checks
    /uploads                → Archive upload presign / complete / discard
    /scrape                 → Snapshot scrape requests
    /jobs                   → Job status and reminders
    /backups                → Owned backups, downloads, share links
    /shared                 → Public read through a share token

Usage:
======
    from socialvault.api.routes import register_routes

    app = FastAPI()
    register_routes(app)
"""

from fastapi import FastAPI

from socialvault.api.handlers import (
    backup_handler,
    health_handler,
    job_handler,
    scrape_handler,
    shared_handler,
    upload_handler,
)


def register_routes(app: FastAPI) -> None:
    """
    Register all API routes.

    Args:
        app: FastAPI application instance
    """
    # Health check endpoints (no prefix, root level)
    app.include_router(
        health_handler.router,
        tags=["Health"],
    )

    app.include_router(
        upload_handler.router,
        prefix="/uploads",
        tags=["Uploads"],
    )

    app.include_router(
        scrape_handler.router,
        prefix="/scrape",
        tags=["Scrape"],
    )

    app.include_router(
        job_handler.router,
        prefix="/jobs",
        tags=["Jobs"],
    )

    app.include_router(
        backup_handler.router,
        prefix="/backups",
        tags=["Backups"],
    )

    app.include_router(
        shared_handler.router,
        prefix="/shared",
        tags=["Shared"],
    )
