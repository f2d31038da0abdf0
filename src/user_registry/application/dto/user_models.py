"""Pydantic request/response models for the user HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from user_registry.application.ports.user_repository_port import UserRecord
from user_registry.application.services.user_service import UserCreateInput, UserUpdateInput
from user_registry.domain.engagement_level import EngagementLevel

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
EmailText = Annotated[
    str,
    StringConstraints(strip_whitespace=True, max_length=255, pattern=_EMAIL_PATTERN),
]
NotesStr = Annotated[str, StringConstraints(max_length=2000)]
SentimentScore = Annotated[float, Field(ge=-1.0, le=1.0)]


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection and camelCase wire names."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class UserCreateRequest(StrictModel):
    """Payload for creating one user."""

    first_name: NameStr
    last_name: NameStr
    email: EmailText
    notes: NotesStr | None = None

    def to_input(self) -> UserCreateInput:
        return UserCreateInput(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            notes=self.notes,
        )


class UserUpdateRequest(StrictModel):
    """Partial update payload; omitted fields keep their stored values."""

    first_name: Annotated[str, StringConstraints(max_length=100)] | None = None
    last_name: Annotated[str, StringConstraints(max_length=100)] | None = None
    email: EmailText | None = None
    notes: NotesStr | None = None
    sentiment_score: SentimentScore | None = None
    extracted_tags: list[str] | None = None
    engagement_level: EngagementLevel | None = None

    def to_input(self) -> UserUpdateInput:
        return UserUpdateInput(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            notes=self.notes,
            sentiment_score=self.sentiment_score,
            extracted_tags=tuple(self.extracted_tags) if self.extracted_tags is not None else None,
            engagement_level=self.engagement_level,
        )


class UserResponse(StrictModel):
    """Full user representation returned by every user endpoint."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    notes: str | None
    created_at: datetime
    sentiment_score: float | None
    extracted_tags: list[str] | None
    last_analyzed_at: datetime | None
    engagement_level: EngagementLevel | None

    @classmethod
    def from_record(cls, record: UserRecord) -> UserResponse:
        return cls(
            id=record.user_id,
            first_name=record.first_name,
            last_name=record.last_name,
            email=record.email,
            notes=record.notes,
            created_at=record.created_at,
            sentiment_score=record.sentiment_score,
            extracted_tags=list(record.extracted_tags) if record.extracted_tags is not None else None,
            last_analyzed_at=record.last_analyzed_at,
            engagement_level=record.engagement_level,
        )


class HealthCheckEntry(StrictModel):
    status: str
    description: str


class HealthResponse(StrictModel):
    """Aggregated probe response."""

    status: str
    checks: dict[str, HealthCheckEntry]
