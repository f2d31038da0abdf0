"""Application service enforcing user business rules above the record store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Generic, TypeVar
from uuid import UUID, uuid4

from user_registry.application.ports.enrichment_port import EnrichmentClientPort, NoteInsights
from user_registry.application.ports.user_repository_port import (
    DuplicateEmailError,
    UserRecord,
    UserRepositoryPort,
)
from user_registry.domain.engagement_level import EngagementLevel
from user_registry.domain.user_normalization import (
    emails_match,
    normalize_email,
    normalize_name,
    normalize_notes,
)

T = TypeVar("T")
logger = logging.getLogger(__name__)


class UserErrorCode(StrEnum):
    """Stable machine-readable codes for business-rule failures."""

    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    NOT_FOUND = "NOT_FOUND"
    UPDATE_FAILED = "UPDATE_FAILED"


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of one service use-case: data on success, message and code otherwise."""

    success: bool
    data: T | None = None
    error_message: str | None = None
    error_code: UserErrorCode | None = None

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error_message: str, error_code: UserErrorCode) -> ServiceResult[T]:
        return cls(success=False, error_message=error_message, error_code=error_code)


@dataclass(frozen=True)
class UserCreateInput:
    """Validated creation payload."""

    first_name: str
    last_name: str
    email: str
    notes: str | None = None


@dataclass(frozen=True)
class UserUpdateInput:
    """Validated partial-update payload; None means the field was not supplied."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    notes: str | None = None
    sentiment_score: float | None = None
    extracted_tags: tuple[str, ...] | None = None
    engagement_level: EngagementLevel | None = None


class UserService:
    """Expose user listing, creation, partial update and deletion use-cases."""

    def __init__(
        self,
        *,
        users: UserRepositoryPort,
        enrichment: EnrichmentClientPort | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._users = users
        self._enrichment = enrichment
        self._clock = clock or _utcnow

    async def list_users(self) -> list[UserRecord]:
        users = await self._users.list_all()
        logger.info("retrieved %d users", len(users))
        return users

    async def get_user(self, *, user_id: UUID) -> UserRecord | None:
        user = await self._users.get_by_id(user_id=user_id)
        if user is None:
            logger.warning("user not found: %s", user_id)
        return user

    async def create_user(
        self,
        *,
        payload: UserCreateInput,
        correlation_id: str | None = None,
    ) -> ServiceResult[UserRecord]:
        """Normalize, reject duplicate emails, enrich notes when possible, then persist."""

        email = normalize_email(payload.email)
        logger.info("creating user with email %s", email)

        if await self._users.get_by_email(email=email) is not None:
            logger.warning("cannot create user, email already exists: %s", email)
            return _duplicate_email(email)

        candidate = UserRecord(
            user_id=uuid4(),
            first_name=normalize_name(payload.first_name),
            last_name=normalize_name(payload.last_name),
            email=email,
            notes=normalize_notes(payload.notes),
            created_at=self._clock(),
        )

        if candidate.notes:
            insights = await self._generate_insights(
                candidate.notes,
                correlation_id=correlation_id,
            )
            if insights is not None:
                candidate = replace(
                    candidate,
                    sentiment_score=insights.sentiment_score,
                    extracted_tags=insights.tags,
                    engagement_level=insights.engagement_level,
                    last_analyzed_at=self._clock(),
                )

        try:
            created = await self._users.add(candidate, enforce_unique_email=True)
        except DuplicateEmailError:
            logger.warning("email claimed concurrently, rejecting create: %s", email)
            return _duplicate_email(email)

        logger.info("created user %s with email %s", created.user_id, created.email)
        return ServiceResult.ok(created)

    async def update_user(
        self,
        *,
        user_id: UUID,
        payload: UserUpdateInput,
    ) -> ServiceResult[UserRecord]:
        """Merge supplied fields into the stored user and persist the result."""

        existing = await self._users.get_by_id(user_id=user_id)
        if existing is None:
            logger.warning("cannot update, user not found: %s", user_id)
            return ServiceResult.fail("User not found.", UserErrorCode.NOT_FOUND)

        new_email = _supplied_text(payload.email)
        if new_email is not None and not emails_match(new_email, existing.email):
            if await self._users.get_by_email(email=normalize_email(new_email)) is not None:
                logger.warning("cannot update user %s, email already exists: %s", user_id, new_email)
                return _duplicate_email(normalize_email(new_email))

        merged = self._merge(existing, payload)

        try:
            updated = await self._users.update(merged, enforce_unique_email=True)
        except DuplicateEmailError:
            logger.warning("email claimed concurrently, rejecting update of user %s", user_id)
            return _duplicate_email(merged.email)
        if not updated:
            logger.error("failed to update user %s in repository", user_id)
            return ServiceResult.fail("Failed to update user.", UserErrorCode.UPDATE_FAILED)

        logger.info("updated user %s", user_id)
        return ServiceResult.ok(merged)

    async def delete_user(self, *, user_id: UUID) -> bool:
        deleted = await self._users.delete(user_id=user_id)
        if deleted:
            logger.info("deleted user %s", user_id)
        else:
            logger.warning("user not found for deletion: %s", user_id)
        return deleted

    def _merge(self, existing: UserRecord, payload: UserUpdateInput) -> UserRecord:
        changes: dict[str, object] = {}

        first_name = _supplied_text(payload.first_name)
        if first_name is not None:
            changes["first_name"] = normalize_name(first_name)
        last_name = _supplied_text(payload.last_name)
        if last_name is not None:
            changes["last_name"] = normalize_name(last_name)
        email = _supplied_text(payload.email)
        if email is not None:
            changes["email"] = normalize_email(email)
        if payload.notes is not None:
            changes["notes"] = normalize_notes(payload.notes)

        if payload.sentiment_score is not None:
            changes["sentiment_score"] = payload.sentiment_score
        if payload.extracted_tags is not None:
            changes["extracted_tags"] = tuple(payload.extracted_tags)
        if payload.engagement_level is not None:
            changes["engagement_level"] = payload.engagement_level

        if {"sentiment_score", "extracted_tags", "engagement_level"} & changes.keys():
            changes["last_analyzed_at"] = self._clock()

        return replace(existing, **changes)

    async def _generate_insights(
        self,
        notes: str,
        *,
        correlation_id: str | None,
    ) -> NoteInsights | None:
        if self._enrichment is None:
            return None

        logger.info("requesting note insights, correlation id %s", correlation_id)
        try:
            insights = await self._enrichment.generate_insights(
                notes,
                correlation_id=correlation_id,
            )
        except Exception:  # noqa: BLE001
            logger.exception("note enrichment failed, creating user without insights")
            return None

        if insights is None:
            logger.warning("note enrichment returned no insights, creating user without them")
            return None

        logger.info(
            "note insights applied: sentiment %s, %d tags, engagement %s",
            insights.sentiment_score,
            len(insights.tags),
            insights.engagement_level,
        )
        return insights


def _supplied_text(value: str | None) -> str | None:
    """Treat missing and whitespace-only text fields as not supplied."""

    if value is None or not value.strip():
        return None
    return value


def _duplicate_email(email: str) -> ServiceResult[UserRecord]:
    return ServiceResult.fail(
        f"A user with email '{email}' already exists.",
        UserErrorCode.DUPLICATE_EMAIL,
    )


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)
