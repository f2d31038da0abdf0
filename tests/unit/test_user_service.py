from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from user_registry.application.ports.enrichment_port import NoteInsights
from user_registry.application.ports.user_repository_port import DuplicateEmailError, UserRecord
from user_registry.application.services.user_service import (
    ServiceResult,
    UserCreateInput,
    UserErrorCode,
    UserService,
    UserUpdateInput,
)
from user_registry.domain.engagement_level import EngagementLevel

_CREATED_AT = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


def _make_user(
    *,
    user_id: UUID | None = None,
    email: str = "jane@example.org",
    notes: str | None = "likes hiking",
    sentiment_score: float | None = None,
    extracted_tags: tuple[str, ...] | None = None,
    engagement_level: EngagementLevel | None = None,
    last_analyzed_at: datetime | None = None,
) -> UserRecord:
    return UserRecord(
        user_id=user_id or uuid4(),
        first_name="Jane",
        last_name="Smith",
        email=email,
        notes=notes,
        created_at=_CREATED_AT,
        sentiment_score=sentiment_score,
        extracted_tags=extracted_tags,
        engagement_level=engagement_level,
        last_analyzed_at=last_analyzed_at,
    )


@dataclass
class FakeUserRepository:
    users: list[UserRecord] = field(default_factory=list)
    added: list[UserRecord] = field(default_factory=list)
    updated: list[UserRecord] = field(default_factory=list)
    update_result: bool | None = None
    stored_created_at: datetime = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    async def list_all(self) -> list[UserRecord]:
        return list(self.users)

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        for user in self.users:
            if user.user_id == user_id:
                return user
        return None

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        for user in self.users:
            if user.email.lower() == email.strip().lower():
                return user
        return None

    async def add(self, record: UserRecord, *, enforce_unique_email: bool = False) -> UserRecord:
        if enforce_unique_email and await self.get_by_email(email=record.email) is not None:
            raise DuplicateEmailError(email=record.email)
        stored = replace(record, created_at=self.stored_created_at)
        self.added.append(stored)
        self.users.append(stored)
        return stored

    async def update(self, record: UserRecord, *, enforce_unique_email: bool = False) -> bool:
        self.updated.append(record)
        if self.update_result is not None:
            return self.update_result
        for index, user in enumerate(self.users):
            if user.user_id == record.user_id:
                self.users[index] = replace(record, created_at=user.created_at)
                return True
        return False

    async def delete(self, *, user_id: UUID) -> bool:
        for index, user in enumerate(self.users):
            if user.user_id == user_id:
                del self.users[index]
                return True
        return False

    async def exists(self, *, user_id: UUID) -> bool:
        return await self.get_by_id(user_id=user_id) is not None


@dataclass
class FakeEnrichmentClient:
    insights: NoteInsights | None = None
    error: Exception | None = None
    calls: list[tuple[str, str | None]] = field(default_factory=list)

    async def generate_insights(
        self,
        text: str,
        *,
        correlation_id: str | None = None,
    ) -> NoteInsights | None:
        self.calls.append((text, correlation_id))
        if self.error is not None:
            raise self.error
        return self.insights


class StepClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.mark.asyncio
async def test_list_users_returns_repository_listing() -> None:
    users = FakeUserRepository(
        users=[_make_user(email="a@example.org"), _make_user(email="b@example.org")]
    )
    service = UserService(users=users)

    listed = await service.list_users()

    assert [item.email for item in listed] == ["a@example.org", "b@example.org"]


@pytest.mark.asyncio
async def test_get_user_returns_none_for_unknown_id() -> None:
    service = UserService(users=FakeUserRepository())

    assert await service.get_user(user_id=uuid4()) is None


@pytest.mark.asyncio
async def test_create_user_normalizes_fields() -> None:
    users = FakeUserRepository()
    service = UserService(users=users)

    result = await service.create_user(
        payload=UserCreateInput(
            first_name="  John ",
            last_name=" Doe  ",
            email="  JOHN@X.COM  ",
            notes="  met at conference  ",
        )
    )

    assert result.success is True
    assert result.data is not None
    assert result.data.first_name == "John"
    assert result.data.last_name == "Doe"
    assert result.data.email == "john@x.com"
    assert result.data.notes == "met at conference"
    assert result.data.created_at == users.stored_created_at
    assert result.data.last_analyzed_at is None
    assert users.added[0].email == "john@x.com"


@pytest.mark.asyncio
async def test_create_user_rejects_duplicate_email_without_writing() -> None:
    existing = _make_user(email="john@x.com")
    users = FakeUserRepository(users=[existing])
    service = UserService(users=users)

    result = await service.create_user(
        payload=UserCreateInput(first_name="John", last_name="Doe", email=" John@X.com ")
    )

    assert result.success is False
    assert result.error_code is UserErrorCode.DUPLICATE_EMAIL
    assert result.error_message == "A user with email 'john@x.com' already exists."
    assert users.added == []
    assert len(users.users) == 1


@pytest.mark.asyncio
async def test_create_user_maps_store_level_conflict_to_duplicate_email() -> None:
    class RacingRepository(FakeUserRepository):
        async def get_by_email(self, *, email: str) -> UserRecord | None:
            return None

        async def add(
            self,
            record: UserRecord,
            *,
            enforce_unique_email: bool = False,
        ) -> UserRecord:
            assert enforce_unique_email is True
            raise DuplicateEmailError(email=record.email)

    service = UserService(users=RacingRepository())

    result = await service.create_user(
        payload=UserCreateInput(first_name="John", last_name="Doe", email="john@x.com")
    )

    assert result.error_code is UserErrorCode.DUPLICATE_EMAIL


@pytest.mark.asyncio
async def test_create_user_applies_enrichment_insights() -> None:
    clock = StepClock(datetime(2024, 3, 1, tzinfo=UTC))
    enrichment = FakeEnrichmentClient(
        insights=NoteInsights(
            sentiment_score=0.75,
            tags=("travel", "outdoors"),
            engagement_level=EngagementLevel.HIGH,
        )
    )
    service = UserService(users=FakeUserRepository(), enrichment=enrichment, clock=clock)

    result = await service.create_user(
        payload=UserCreateInput(
            first_name="Jane",
            last_name="Smith",
            email="jane@example.org",
            notes="  loves travel  ",
        ),
        correlation_id="corr-1",
    )

    assert result.data is not None
    assert result.data.sentiment_score == 0.75
    assert result.data.extracted_tags == ("travel", "outdoors")
    assert result.data.engagement_level is EngagementLevel.HIGH
    assert result.data.last_analyzed_at is not None
    assert enrichment.calls == [("loves travel", "corr-1")]


@pytest.mark.asyncio
@pytest.mark.parametrize("notes", [None, "", "   "])
async def test_create_user_skips_enrichment_without_notes(notes: str | None) -> None:
    enrichment = FakeEnrichmentClient(
        insights=NoteInsights(sentiment_score=0.1, tags=(), engagement_level=None)
    )
    service = UserService(users=FakeUserRepository(), enrichment=enrichment)

    result = await service.create_user(
        payload=UserCreateInput(
            first_name="Jane",
            last_name="Smith",
            email="jane@example.org",
            notes=notes,
        )
    )

    assert result.success is True
    assert enrichment.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "enrichment",
    [
        FakeEnrichmentClient(insights=None),
        FakeEnrichmentClient(error=TimeoutError("deadline exceeded")),
        FakeEnrichmentClient(error=RuntimeError("connection refused")),
    ],
)
async def test_create_user_succeeds_when_enrichment_fails(
    enrichment: FakeEnrichmentClient,
) -> None:
    users = FakeUserRepository()
    service = UserService(users=users, enrichment=enrichment)

    result = await service.create_user(
        payload=UserCreateInput(
            first_name="Jane",
            last_name="Smith",
            email="jane@example.org",
            notes="some notes",
        )
    )

    assert result.success is True
    assert result.data is not None
    assert result.data.sentiment_score is None
    assert result.data.extracted_tags is None
    assert result.data.engagement_level is None
    assert result.data.last_analyzed_at is None
    assert len(users.users) == 1


@pytest.mark.asyncio
async def test_update_user_returns_not_found_for_unknown_id() -> None:
    users = FakeUserRepository()
    service = UserService(users=users)

    result = await service.update_user(user_id=uuid4(), payload=UserUpdateInput(last_name="X"))

    assert result == ServiceResult.fail("User not found.", UserErrorCode.NOT_FOUND)
    assert users.updated == []


@pytest.mark.asyncio
async def test_update_user_only_changes_supplied_fields() -> None:
    analyzed_at = datetime(2024, 2, 1, tzinfo=UTC)
    target = _make_user(
        sentiment_score=0.2,
        extracted_tags=("a",),
        engagement_level=EngagementLevel.LOW,
        last_analyzed_at=analyzed_at,
    )
    users = FakeUserRepository(users=[target])
    service = UserService(users=users)

    result = await service.update_user(
        user_id=target.user_id,
        payload=UserUpdateInput(last_name="  Johnson "),
    )

    assert result.data == replace(target, last_name="Johnson")
    assert result.data is not None
    assert result.data.last_analyzed_at == analyzed_at


@pytest.mark.asyncio
async def test_update_user_ignores_blank_text_fields() -> None:
    target = _make_user()
    users = FakeUserRepository(users=[target])
    service = UserService(users=users)

    result = await service.update_user(
        user_id=target.user_id,
        payload=UserUpdateInput(first_name="  ", email=""),
    )

    assert result.data == target


@pytest.mark.asyncio
async def test_update_user_allows_same_email_with_different_case() -> None:
    target = _make_user(email="john@x.com")
    users = FakeUserRepository(users=[target])
    service = UserService(users=users)

    result = await service.update_user(
        user_id=target.user_id,
        payload=UserUpdateInput(email="JOHN@X.COM"),
    )

    assert result.success is True
    assert result.data is not None
    assert result.data.email == "john@x.com"


@pytest.mark.asyncio
async def test_update_user_rejects_email_held_by_other_user() -> None:
    target = _make_user(email="jane@example.org")
    other = _make_user(email="taken@example.org")
    users = FakeUserRepository(users=[target, other])
    service = UserService(users=users)

    result = await service.update_user(
        user_id=target.user_id,
        payload=UserUpdateInput(email=" Taken@Example.org"),
    )

    assert result.error_code is UserErrorCode.DUPLICATE_EMAIL
    assert users.updated == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        UserUpdateInput(sentiment_score=-0.5),
        UserUpdateInput(extracted_tags=("vip",)),
        UserUpdateInput(engagement_level=EngagementLevel.VERY_HIGH),
        UserUpdateInput(
            sentiment_score=0.9,
            extracted_tags=(),
            engagement_level=EngagementLevel.MEDIUM,
        ),
    ],
)
async def test_update_user_enrichment_fields_refresh_last_analyzed_at(
    payload: UserUpdateInput,
) -> None:
    target = _make_user()
    users = FakeUserRepository(users=[target])
    before = datetime.now(tz=UTC)
    service = UserService(users=users)

    result = await service.update_user(user_id=target.user_id, payload=payload)

    assert result.data is not None
    assert result.data.last_analyzed_at is not None
    assert result.data.last_analyzed_at >= before
    if payload.sentiment_score is not None:
        assert result.data.sentiment_score == payload.sentiment_score
    if payload.extracted_tags is not None:
        assert result.data.extracted_tags == payload.extracted_tags
    if payload.engagement_level is not None:
        assert result.data.engagement_level is payload.engagement_level


@pytest.mark.asyncio
async def test_update_user_notes_without_enrichment_fields_keeps_last_analyzed_at() -> None:
    target = _make_user(last_analyzed_at=None)
    users = FakeUserRepository(users=[target])
    service = UserService(users=users)

    result = await service.update_user(
        user_id=target.user_id,
        payload=UserUpdateInput(notes="  new notes "),
    )

    assert result.data is not None
    assert result.data.notes == "new notes"
    assert result.data.last_analyzed_at is None


@pytest.mark.asyncio
async def test_update_user_reports_update_failed_when_store_rejects() -> None:
    target = _make_user()
    users = FakeUserRepository(users=[target], update_result=False)
    service = UserService(users=users)

    result = await service.update_user(
        user_id=target.user_id,
        payload=UserUpdateInput(first_name="Janet"),
    )

    assert result.success is False
    assert result.error_code is UserErrorCode.UPDATE_FAILED
    assert result.error_message == "Failed to update user."


@pytest.mark.asyncio
async def test_delete_user_reports_outcome_as_boolean() -> None:
    target = _make_user()
    users = FakeUserRepository(users=[target])
    service = UserService(users=users)

    assert await service.delete_user(user_id=target.user_id) is True
    assert await service.delete_user(user_id=target.user_id) is False
