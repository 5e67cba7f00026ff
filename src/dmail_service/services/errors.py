"""Exceptions raised by the dmail services."""

from __future__ import annotations


class DmailError(RuntimeError):
    """Base exception for dmail failures."""


class DmailNotFoundError(DmailError):
    """Raised when a dmail copy or user does not exist."""


class DmailPermissionError(DmailError):
    """Raised when the caller may not act on a dmail copy.

    Nothing is mutated when this is raised.
    """


class DmailValidationError(DmailError):
    """Raised when request input is rejected before any write happens."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors
