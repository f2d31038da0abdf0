"""JSON document mapping for persisted user records."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from user_registry.application.ports.user_repository_port import UserRecord
from user_registry.domain.engagement_level import EngagementLevel


class UserDocumentError(ValueError):
    """Raised when a persisted user document cannot be decoded."""


def user_to_document(record: UserRecord) -> dict[str, object]:
    """Return the camelCase JSON document for one user."""

    return {
        "id": str(record.user_id),
        "firstName": record.first_name,
        "lastName": record.last_name,
        "email": record.email,
        "notes": record.notes,
        "createdAt": record.created_at.isoformat(),
        "sentimentScore": record.sentiment_score,
        "extractedTags": list(record.extracted_tags) if record.extracted_tags is not None else None,
        "lastAnalyzedAt": (
            record.last_analyzed_at.isoformat() if record.last_analyzed_at is not None else None
        ),
        "engagementLevel": (
            record.engagement_level.value if record.engagement_level is not None else None
        ),
    }


def user_from_document(document: Mapping[str, Any]) -> UserRecord:
    """Decode one camelCase user document into a record."""

    try:
        raw_tags = document.get("extractedTags")
        raw_score = document.get("sentimentScore")
        raw_level = document.get("engagementLevel")
        raw_analyzed_at = document.get("lastAnalyzedAt")
        return UserRecord(
            user_id=UUID(str(document["id"])),
            first_name=str(document["firstName"]),
            last_name=str(document["lastName"]),
            email=str(document["email"]),
            notes=document.get("notes"),
            created_at=datetime.fromisoformat(str(document["createdAt"])),
            sentiment_score=float(raw_score) if raw_score is not None else None,
            extracted_tags=tuple(str(tag) for tag in raw_tags) if raw_tags is not None else None,
            engagement_level=EngagementLevel(raw_level) if raw_level else None,
            last_analyzed_at=(
                datetime.fromisoformat(str(raw_analyzed_at)) if raw_analyzed_at else None
            ),
        )
    except (KeyError, TypeError, ValueError) as error:
        raise UserDocumentError(f"invalid user document: {error}") from error


def encode_users(records: Sequence[UserRecord]) -> str:
    """Serialize the full collection as a pretty-printed JSON array."""

    return json.dumps(
        [user_to_document(record) for record in records],
        indent=2,
        ensure_ascii=False,
    )


def decode_users(payload: str) -> list[UserRecord]:
    """Parse a persisted JSON array into records, preserving order."""

    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError as error:
        raise UserDocumentError(f"invalid JSON payload: {error}") from error
    if decoded is None:
        return []
    if not isinstance(decoded, list):
        raise UserDocumentError("user file must contain a JSON array")
    records: list[UserRecord] = []
    for item in decoded:
        if not isinstance(item, Mapping):
            raise UserDocumentError("user file entries must be JSON objects")
        records.append(user_from_document(item))
    return records
