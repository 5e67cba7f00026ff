# src/dmail_service/main.py
"""Main entry point for the dmail service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from dmail_service.api.v1 import dmails_router
from dmail_service.core.settings import settings
from dmail_service.services.notifications import (
    build_notification_dispatcher,
    close_notification_dispatcher,
)
from dmail_service.services.spam import NullSpamClassifier

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Dmail API",
    description="Private user-to-user messaging API",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(dmails_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    logger.info("%s %s starting", settings.app_name, settings.app_version)
    app.state.spam_classifier = NullSpamClassifier()
    app.state.notifier = build_notification_dispatcher(
        settings.notification_webhook_url,
        timeout=settings.notification_timeout_seconds,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    close_notification_dispatcher(getattr(app.state, "notifier", None))
    app.state.notifier = None


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Dmail API",
        "version": settings.app_version,
        "description": "Private user-to-user messaging API",
        "docs": "/docs",
        "redoc": "/redoc"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("dmail_service.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
