# src/dmail_service/models/user.py
"""SQLAlchemy models for user accounts referenced by dmails."""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dmail_service.db.session import Base
from dmail_service.db.time import utcnow
from dmail_service.utils.names import pretty_name

if TYPE_CHECKING:
    from .ban import Ban
    from .dmail_filter import DmailFilter


class UserLevel(IntEnum):
    """Account tiers, ordered by privilege."""

    MEMBER = 20
    GOLD = 30
    PLATINUM = 31
    BUILDER = 32
    MODERATOR = 40
    ADMIN = 50


class User(Base):
    """Account holding the denormalized mail counters kept by the dmail core."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Stored normalized: lower-case with spaces replaced by underscores.
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=int(UserLevel.MEMBER))
    receive_email_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Denormalized from the owner's non-deleted unread dmails.
    has_mail: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unread_dmail_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    dmail_filter: Mapped[DmailFilter | None] = relationship(
        "DmailFilter",
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False,
    )
    bans: Mapped[list[Ban]] = relationship(
        "Ban",
        back_populates="user",
        foreign_keys="Ban.user_id",
    )

    @property
    def pretty_name(self) -> str:
        """Return the user's name with underscores shown as spaces."""
        return pretty_name(self.name)

    @property
    def is_gold(self) -> bool:
        return self.level >= UserLevel.GOLD

    @property
    def is_moderator(self) -> bool:
        return self.level >= UserLevel.MODERATOR
