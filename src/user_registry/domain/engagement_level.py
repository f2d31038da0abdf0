"""Engagement level enum produced by note enrichment."""

from __future__ import annotations

from enum import StrEnum


class EngagementLevel(StrEnum):
    """Coarse engagement buckets assigned to a user from their notes."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "VeryHigh"
