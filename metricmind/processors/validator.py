"""Acceptance rules for category names proposed by people or models."""

from __future__ import annotations

import re
from typing import Optional

MIN_LENGTH = 2
MAX_LENGTH = 50
MAX_DIGIT_RATIO = 0.5

_PURELY_NUMERIC = re.compile(r"^\d+$")
_VERSION_PREFIX = re.compile(r"^\d+\.\d+")
_ISSUE_REFERENCE = re.compile(r"^#\d+$")
_HASH_PREFIX = re.compile(r"^#")
_LETTER = re.compile(r"[A-Za-z]")


def rejection_reason(category: Optional[str], prevent_numeric: bool = True) -> Optional[str]:
    """Return a human-readable reason ``category`` is rejected, or ``None`` when it is valid.

    Length and the letter requirement always apply. ``prevent_numeric`` adds the
    checks that keep version numbers, issue references and year-like strings out
    of the vocabulary.
    """
    if category is None:
        return "category is null"
    if not category.strip():
        return "category is blank"
    if len(category) < MIN_LENGTH:
        return f"too short (minimum {MIN_LENGTH} characters)"
    if len(category) > MAX_LENGTH:
        return f"too long (maximum {MAX_LENGTH} characters)"

    if prevent_numeric:
        if _PURELY_NUMERIC.match(category):
            return "cannot be purely numeric (e.g., '2023')"
        if _VERSION_PREFIX.match(category):
            return "cannot be a version number (e.g., '2.58.0')"
        if _ISSUE_REFERENCE.match(category):
            return "cannot be an issue number (e.g., '#6802')"
        if _HASH_PREFIX.match(category):
            return "cannot start with '#'"
        digits = sum(1 for char in category if char.isdigit())
        if digits / len(category) > MAX_DIGIT_RATIO:
            return f"too many digits (>{int(MAX_DIGIT_RATIO * 100)}% of characters)"

    if not _LETTER.search(category):
        return "must contain at least one letter"
    return None


def is_valid(category: Optional[str], prevent_numeric: bool = True) -> bool:
    return rejection_reason(category, prevent_numeric) is None


def validate_or_raise(category: Optional[str], prevent_numeric: bool = True) -> str:
    """Return ``category`` unchanged or raise :class:`ValueError` carrying the rejection reason."""
    reason = rejection_reason(category, prevent_numeric)
    if reason is not None:
        raise ValueError(f"Invalid category {category!r}: {reason}")
    return category  # type: ignore[return-value]


__all__ = [
    "MAX_DIGIT_RATIO",
    "MAX_LENGTH",
    "MIN_LENGTH",
    "is_valid",
    "rejection_reason",
    "validate_or_raise",
]
