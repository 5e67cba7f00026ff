"""Automatic sanctions for senders of spam dmails."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from dmail_service.core.settings import settings
from dmail_service.db.time import utcnow
from dmail_service.models import Ban, Dmail, User
from dmail_service.services.users import get_system_user, get_user, is_banned

logger = logging.getLogger(__name__)


class AutobanPolicy:
    """Bans a sender who spammed too many distinct recipients recently.

    The count is taken over recipient-owned copies flagged as spam and sent
    by the user inside a trailing window. Two concurrent sends may both see
    a count just under the threshold; the ban then lands on the next send.
    """

    def __init__(
        self,
        db: Session,
        *,
        threshold: int | None = None,
        window: timedelta | None = None,
        duration_days: int | None = None,
        reason: str | None = None,
    ) -> None:
        self.db = db
        self.threshold = threshold if threshold is not None else settings.autoban_threshold
        self.window = window if window is not None else settings.autoban_window
        self.duration_days = (
            duration_days if duration_days is not None else settings.autoban_duration_days
        )
        self.reason = reason if reason is not None else settings.autoban_reason

    def spammed_recipient_count(self, user_id: int, now: datetime | None = None) -> int:
        """Return how many distinct users received spam from ``user_id`` in the window."""
        since = (now or utcnow()) - self.window
        count = (
            self.db.query(func.count(func.distinct(Dmail.to_id)))
            .filter(
                Dmail.from_id == user_id,
                Dmail.owner_id != user_id,
                Dmail.is_spam.is_(True),
                Dmail.created_at > since,
            )
            .scalar()
        )
        return int(count or 0)

    def is_spammer(self, user: User, now: datetime | None = None) -> bool:
        if user.is_gold:
            return False
        return self.spammed_recipient_count(user.id, now) >= self.threshold

    def ban_spammer(self, spammer: User, now: datetime | None = None) -> Ban:
        """Persist a ban against ``spammer`` issued by the system user."""
        banner = get_system_user(self.db)
        created_at = now or utcnow()
        ban = Ban(
            user_id=spammer.id,
            banner_id=banner.id,
            reason=self.reason,
            duration=self.duration_days,
            created_at=created_at,
            expires_at=created_at + timedelta(days=self.duration_days),
        )
        self.db.add(ban)
        self.db.commit()
        logger.warning(
            "Autobanned user %s for %s day(s): %s",
            spammer.id,
            self.duration_days,
            self.reason,
        )
        return ban

    def evaluate(self, user_id: int, now: datetime | None = None) -> Ban | None:
        """Ban the user if they crossed the spam threshold.

        Returns the new ban, or None when no ban was issued. A user who is
        already banned is left alone so repeated evaluations never stack bans.
        """
        user = get_user(self.db, user_id)
        if user is None or user.is_gold:
            return None
        if is_banned(self.db, user.id):
            return None
        if not self.is_spammer(user, now):
            return None
        return self.ban_spammer(user, now)
