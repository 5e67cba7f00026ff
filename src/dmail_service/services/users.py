"""User lookups needed by the dmail services."""
from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from dmail_service.core.settings import settings
from dmail_service.db.time import utcnow
from dmail_service.models import Ban, User, UserLevel
from dmail_service.utils.names import normalize_name

__all__ = [
    "get_user",
    "find_user_by_name",
    "get_system_user",
    "is_banned",
]


def get_user(db: Session, user_id: int | None) -> User | None:
    """Return a single user by primary key."""
    if user_id is None:
        return None
    return db.get(User, user_id)


def find_user_by_name(db: Session, name: str | None) -> User | None:
    """Return the user whose normalized name equals ``name``."""
    normalized = normalize_name(name)
    if not normalized:
        return None
    return db.query(User).filter(func.lower(User.name) == normalized).first()


def get_system_user(db: Session) -> User:
    """Return the system actor, creating it on first use."""
    name = normalize_name(settings.system_user_name)
    user = find_user_by_name(db, name)
    if user is None:
        user = User(name=name, level=int(UserLevel.ADMIN))
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def is_banned(db: Session, user_id: int) -> bool:
    """Return True if the user holds a ban that has not yet expired."""
    active = (
        db.query(Ban.id)
        .filter(Ban.user_id == user_id, Ban.expires_at > utcnow())
        .first()
    )
    return active is not None
