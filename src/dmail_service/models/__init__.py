"""SQLAlchemy models for the dmail service."""

from .ban import Ban
from .dmail import Dmail
from .dmail_filter import DmailFilter
from .user import User, UserLevel

__all__ = [
    "Ban",
    "Dmail",
    "DmailFilter",
    "User", "UserLevel",
]
