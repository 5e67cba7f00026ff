"""Recipient-side dmail filtering."""

from __future__ import annotations

import re

from dmail_service.models import DmailFilter, User
from dmail_service.services.types import DmailDraft


class FilterEngine:
    """Decides whether a draft matches a recipient's standing filter.

    A filter is a list of words; the draft matches when any of them occurs
    as a whole word (case-insensitively) in the title, the body or the
    sender's name. Mail from moderators is never filtered.
    """

    @staticmethod
    def pattern(dmail_filter: DmailFilter) -> re.Pattern[str] | None:
        words = dmail_filter.word_list
        if not words:
            return None
        union = "|".join(re.escape(word) for word in words)
        return re.compile(rf"\b(?:{union})\b", re.IGNORECASE)

    def matches(
        self,
        draft: DmailDraft,
        dmail_filter: DmailFilter | None,
        sender: User | None = None,
    ) -> bool:
        if dmail_filter is None:
            return False
        if sender is not None and sender.is_moderator:
            return False

        pattern = self.pattern(dmail_filter)
        if pattern is None:
            return False

        haystacks = [draft.title or "", draft.body or ""]
        if sender is not None:
            haystacks.append(sender.name)
        return any(pattern.search(text) for text in haystacks)
