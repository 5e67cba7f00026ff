"""Denormalized unread-mail counters."""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from dmail_service.models import Dmail, User

logger = logging.getLogger(__name__)


class UnreadCounter:
    """Keeps ``User.unread_dmail_count`` and ``User.has_mail`` equal to the owned unread set."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def count(self, user_id: int) -> int:
        """Return the number of non-deleted unread copies owned by the user."""
        self.db.flush()
        count = (
            self.db.query(func.count(Dmail.id))
            .filter(
                Dmail.owner_id == user_id,
                Dmail.is_read.is_(False),
                Dmail.is_deleted.is_(False),
            )
            .scalar()
        )
        return int(count or 0)

    def resync(self, user_id: int) -> int:
        """Recompute and persist the user's counter and mail flag together."""
        user = self.db.get(User, user_id)
        if user is None:
            return 0
        unread_count = self.count(user_id)
        user.unread_dmail_count = unread_count
        user.has_mail = unread_count > 0
        self.db.commit()
        logger.debug("User %s has %s unread dmail(s)", user_id, unread_count)
        return unread_count
