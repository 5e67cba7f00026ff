# src/dmail_service/models/ban.py
"""Account sanctions."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dmail_service.db.session import Base
from dmail_service.db.time import utcnow

if TYPE_CHECKING:
    from .user import User


class Ban(Base):
    """Time-boxed sanction against a user. Rows are never updated."""

    __tablename__ = "bans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    banner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    # Length of the ban in days.
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    user: Mapped[User] = relationship("User", back_populates="bans", foreign_keys=[user_id])
    banner: Mapped[User] = relationship("User", foreign_keys=[banner_id])
