# src/dmail_service/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import dmails_router

__all__ = [
    "dmails_router",
]
