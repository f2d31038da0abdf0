"""Port for the external note-analysis collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from user_registry.domain.engagement_level import EngagementLevel


@dataclass(frozen=True)
class NoteInsights:
    """Derived metadata returned for one block of free-text notes."""

    sentiment_score: float
    tags: tuple[str, ...]
    engagement_level: EngagementLevel | None
    sentiment_label: str | None = None
    summary: str | None = None


class EnrichmentClientPort(Protocol):
    """Note enrichment contract. Implementations return None instead of raising."""

    async def generate_insights(
        self,
        text: str,
        *,
        correlation_id: str | None = None,
    ) -> NoteInsights | None:
        """Return insights for the text, or None when none could be produced."""
