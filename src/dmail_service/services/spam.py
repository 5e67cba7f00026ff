"""Spam classification seam.

The heuristic deciding whether a draft is spam lives outside this service;
callers inject any object satisfying :class:`SpamClassifier`.
"""

from __future__ import annotations

from typing import Protocol

from dmail_service.services.types import DmailDraft


class SpamClassifier(Protocol):
    """Returns a spam verdict for a draft."""

    def classify(self, draft: DmailDraft) -> bool: ...


class NullSpamClassifier:
    """Classifier used when no detector is configured; flags nothing."""

    def classify(self, draft: DmailDraft) -> bool:
        return False

