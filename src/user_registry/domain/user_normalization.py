"""Normalization rules applied to user-supplied fields before persistence."""

from __future__ import annotations


def normalize_name(value: str) -> str:
    return value.strip()


def normalize_email(value: str) -> str:
    """Return the canonical email form used for storage and comparison."""

    return value.strip().lower()


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip()


def emails_match(left: str, right: str) -> bool:
    """Compare two emails case-insensitively after trimming."""

    return normalize_email(left) == normalize_email(right)
