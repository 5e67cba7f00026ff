# src/dmail_service/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .dmails import router as dmails_router

__all__ = [
    "dmails_router",
]
