"""User repository backed by a single pretty-printed JSON file."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from uuid import UUID, uuid4

from user_registry.application.ports.user_repository_port import (
    DuplicateEmailError,
    UserRecord,
    UserRepositoryPort,
)
from user_registry.domain.user_normalization import emails_match
from user_registry.infrastructure.storage.user_serialization import (
    UserDocumentError,
    decode_users,
    encode_users,
)

NIL_USER_ID = UUID(int=0)
logger = logging.getLogger(__name__)


class StoreState(StrEnum):
    """Initialization lifecycle of the file-backed store."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class UserStoreCorruptedError(RuntimeError):
    """Raised when the backing user file exists but cannot be parsed."""

    def __init__(self, *, file_path: Path, details: str) -> None:
        super().__init__(f"cannot load users from {file_path}: {details}")
        self.file_path = file_path


class JsonUserRepository(UserRepositoryPort):
    """In-memory user collection mirrored to one JSON file.

    A single lock serializes every read and write. Each mutation rewrites the whole
    file before returning, inside the same critical section, through a temp file that
    is renamed over the target.
    """

    def __init__(
        self,
        file_path: Path | str,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], UUID] = uuid4,
    ) -> None:
        self._file_path = Path(file_path)
        self._clock = clock or _utcnow
        self._id_factory = id_factory
        self._lock = asyncio.Lock()
        self._users: list[UserRecord] = []
        self._state = StoreState.UNINITIALIZED
        logger.info("json user repository configured with file path %s", self._file_path)

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def state(self) -> StoreState:
        return self._state

    async def initialize(self) -> None:
        """Load the user file, creating it empty when missing. Safe to call repeatedly."""

        if self._state is StoreState.READY:
            return

        async with self._lock:
            if self._state is StoreState.READY:
                return
            self._state = StoreState.INITIALIZING
            try:
                users = await asyncio.to_thread(self._load_or_create)
            except Exception:
                self._state = StoreState.UNINITIALIZED
                logger.exception("failed to initialize user repository from %s", self._file_path)
                raise
            self._users = users
            self._state = StoreState.READY

    async def list_all(self) -> list[UserRecord]:
        await self._ensure_initialized()
        async with self._lock:
            return list(self._users)

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        await self._ensure_initialized()
        async with self._lock:
            return self._find_by_id(user_id)

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        await self._ensure_initialized()
        async with self._lock:
            return self._find_by_email(email)

    async def add(self, record: UserRecord, *, enforce_unique_email: bool = False) -> UserRecord:
        """Append one user and persist; id is generated when nil, creation time always."""

        await self._ensure_initialized()
        async with self._lock:
            if enforce_unique_email and self._find_by_email(record.email) is not None:
                raise DuplicateEmailError(email=record.email)

            user_id = record.user_id if record.user_id != NIL_USER_ID else self._id_factory()
            stored = _detached(replace(record, user_id=user_id, created_at=self._clock()))
            self._users.append(stored)
            await self._persist()

            logger.info("added user %s with email %s", stored.user_id, stored.email)
            return stored

    async def update(self, record: UserRecord, *, enforce_unique_email: bool = False) -> bool:
        """Replace the stored user with the same id, keeping its original creation time."""

        await self._ensure_initialized()
        async with self._lock:
            index = self._index_of(record.user_id)
            if index is None:
                logger.warning("attempted to update non-existent user %s", record.user_id)
                return False

            if enforce_unique_email:
                holder = self._find_by_email(record.email)
                if holder is not None and holder.user_id != record.user_id:
                    raise DuplicateEmailError(email=record.email)

            existing = self._users[index]
            self._users[index] = _detached(replace(record, created_at=existing.created_at))
            await self._persist()

            logger.info("updated user %s", record.user_id)
            return True

    async def delete(self, *, user_id: UUID) -> bool:
        await self._ensure_initialized()
        async with self._lock:
            index = self._index_of(user_id)
            if index is None:
                logger.warning("attempted to delete non-existent user %s", user_id)
                return False

            del self._users[index]
            await self._persist()

            logger.info("deleted user %s", user_id)
            return True

    async def exists(self, *, user_id: UUID) -> bool:
        await self._ensure_initialized()
        async with self._lock:
            return self._index_of(user_id) is not None

    async def _ensure_initialized(self) -> None:
        if self._state is not StoreState.READY:
            await self.initialize()

    async def _persist(self) -> None:
        # Caller holds the lock.
        await asyncio.to_thread(self._write_snapshot, list(self._users))

    def _find_by_id(self, user_id: UUID) -> UserRecord | None:
        index = self._index_of(user_id)
        return self._users[index] if index is not None else None

    def _find_by_email(self, email: str) -> UserRecord | None:
        for user in self._users:
            if emails_match(user.email, email):
                return user
        return None

    def _index_of(self, user_id: UUID) -> int | None:
        for index, user in enumerate(self._users):
            if user.user_id == user_id:
                return index
        return None

    def _load_or_create(self) -> list[UserRecord]:
        directory = self._file_path.parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            logger.info("created data directory %s", directory)

        if self._file_path.exists():
            payload = self._file_path.read_text(encoding="utf-8")
            try:
                users = decode_users(payload)
            except UserDocumentError as error:
                raise UserStoreCorruptedError(
                    file_path=self._file_path,
                    details=str(error),
                ) from error
            logger.info("loaded %d users from disk", len(users))
            return users

        self._write_snapshot([])
        logger.info("created new empty users file at %s", self._file_path)
        return []

    def _write_snapshot(self, users: list[UserRecord]) -> None:
        payload = encode_users(users)
        directory = self._file_path.parent
        file_descriptor, temp_name = tempfile.mkstemp(
            dir=directory,
            prefix=f".{self._file_path.name}.",
            suffix=".tmp",
        )
        temp_path = Path(temp_name)
        try:
            with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._file_path)
        except OSError:
            logger.exception("failed to persist users to %s", self._file_path)
            temp_path.unlink(missing_ok=True)
            raise
        logger.debug("persisted %d users to disk", len(users))


def _detached(record: UserRecord) -> UserRecord:
    """Return a record whose tag collection is an immutable tuple owned by the store."""

    if record.extracted_tags is None or isinstance(record.extracted_tags, tuple):
        return record
    return replace(record, extracted_tags=tuple(record.extracted_tags))


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)
