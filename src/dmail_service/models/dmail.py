# src/dmail_service/models/dmail.py
"""Models describing dmail copies."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dmail_service.core.security import derive_dmail_key
from dmail_service.db.session import Base
from dmail_service.db.time import utcnow

if TYPE_CHECKING:
    from .user import User


class Dmail(Base):
    """One owner's copy of a sent message.

    A send between two users writes two rows sharing title, body, sender,
    recipient and timestamp: one owned by the recipient (their inbox) and
    one owned by the sender (their outbox). Each copy keeps its own read
    and deleted flags. Content is never updated after creation.
    """

    __tablename__ = "dmails"
    __table_args__ = (
        Index("ix_dmails_owner_unread", "owner_id", "is_read", "is_deleted"),
        Index("ix_dmails_from_spam_created", "from_id", "is_spam", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    from_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    to_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_spam: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    owner: Mapped[User] = relationship("User", foreign_keys=[owner_id])
    sender: Mapped[User] = relationship("User", foreign_keys=[from_id])
    recipient: Mapped[User] = relationship("User", foreign_keys=[to_id])

    @property
    def is_sender_copy(self) -> bool:
        return self.owner_id == self.from_id

    @property
    def is_recipient_copy(self) -> bool:
        return self.owner_id == self.to_id

    @property
    def key(self) -> str:
        """Capability key granting privileged users read access to this copy."""
        return derive_dmail_key(self.title, self.body)
