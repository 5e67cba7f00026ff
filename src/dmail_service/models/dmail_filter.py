# src/dmail_service/models/dmail_filter.py
"""Per-user standing filter applied to incoming dmails."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dmail_service.db.session import Base

if TYPE_CHECKING:
    from .user import User


class DmailFilter(Base):
    """Whitespace-separated words that mark an incoming dmail as pre-read."""

    __tablename__ = "dmail_filters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    words: Mapped[str] = mapped_column(Text, nullable=False, default="")

    user: Mapped[User] = relationship("User", back_populates="dmail_filter")

    @property
    def word_list(self) -> list[str]:
        return (self.words or "").split()
