"""Helpers for user name handling."""

from __future__ import annotations

import re

WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str | None) -> str:
    """Return the canonical lookup form of a user name.

    Names are compared case-insensitively; each run of whitespace is
    stored as a single underscore.
    """
    return WHITESPACE.sub("_", (name or "").strip().lower())


def pretty_name(name: str) -> str:
    """Return a display form of a stored user name."""
    return name.replace("_", " ")
