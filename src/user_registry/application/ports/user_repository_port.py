"""Port for the user record store used by the user service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from user_registry.domain.engagement_level import EngagementLevel


@dataclass(frozen=True)
class UserRecord:
    """User persistence model.

    Instances are immutable and tags are held as a tuple, so a record handed out by
    the store can never be used to reach store-internal state.
    """

    user_id: UUID
    first_name: str
    last_name: str
    email: str
    created_at: datetime
    notes: str | None = None
    sentiment_score: float | None = None
    extracted_tags: tuple[str, ...] | None = None
    engagement_level: EngagementLevel | None = None
    last_analyzed_at: datetime | None = None


class DuplicateEmailError(LookupError):
    """Raised by the store when a uniqueness-enforcing write hits a taken email."""

    def __init__(self, *, email: str) -> None:
        super().__init__(f"email already in use: {email}")
        self.email = email


class UserRepositoryPort(Protocol):
    """User repository contract."""

    async def list_all(self) -> list[UserRecord]:
        """Return every stored user in store order."""

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id or None."""

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        """Return user by email (case-insensitive) or None."""

    async def add(self, record: UserRecord, *, enforce_unique_email: bool = False) -> UserRecord:
        """Append one user, stamping id and creation time, and return the stored copy."""

    async def update(self, record: UserRecord, *, enforce_unique_email: bool = False) -> bool:
        """Replace one existing user by id, keeping its creation time."""

    async def delete(self, *, user_id: UUID) -> bool:
        """Remove one user by id and report whether it existed."""

    async def exists(self, *, user_id: UUID) -> bool:
        """Return whether a user with this id is stored."""
