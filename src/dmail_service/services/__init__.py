# src/dmail_service/services/__init__.py
"""Business logic services for the dmail core."""

from .autoban import AutobanPolicy
from .errors import (
    DmailError,
    DmailNotFoundError,
    DmailPermissionError,
    DmailValidationError,
)
from .filters import FilterEngine
from .messages import MessageStore
from .search import QueryCompiler
from .types import Actor, DmailDraft, SendResult
from .unread import UnreadCounter
from .visibility import VisibilityGuard

__all__ = [
    "Actor",
    "AutobanPolicy",
    "DmailDraft",
    "DmailError",
    "DmailNotFoundError",
    "DmailPermissionError",
    "DmailValidationError",
    "FilterEngine",
    "MessageStore",
    "QueryCompiler",
    "SendResult",
    "UnreadCounter",
    "VisibilityGuard",
]
