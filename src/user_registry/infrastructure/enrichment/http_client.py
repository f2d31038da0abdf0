"""HTTP adapter for the external note-analysis service."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from user_registry.application.ports.enrichment_port import NoteInsights
from user_registry.domain.engagement_level import EngagementLevel

CORRELATION_ID_HEADER = "X-Correlation-ID"
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichmentHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


class EnrichmentHttpTransportPort(Protocol):
    """Transport protocol used by the enrichment HTTP adapter."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> EnrichmentHttpResponse:
        """Execute one HTTP request and return normalized response data."""


class EnrichmentAdapterError(RuntimeError):
    """Raised for normalized enrichment adapter failures."""


@dataclass(frozen=True)
class SentimentAnalysis:
    """Sentiment-only analysis of one text."""

    score: float
    label: str | None
    confidence: float | None


class UrllibEnrichmentHttpTransport:
    """urllib-based async transport implementation for enrichment HTTP calls."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> EnrichmentHttpResponse:
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> EnrichmentHttpResponse:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                status_code = int(response.getcode())
                payload = response.read()
                return EnrichmentHttpResponse(status_code=status_code, body_bytes=payload)
        except HTTPError as error:
            payload = error.read()
            return EnrichmentHttpResponse(status_code=int(error.code), body_bytes=payload)
        except URLError as error:
            raise EnrichmentAdapterError(f"transport connection failure: {error}") from error


class EnrichmentHttpClient:
    """Client for `/api/ai/*` analysis endpoints.

    Every public call is a soft failure: non-2xx statuses, malformed envelopes,
    `success: false`, transport errors and timeouts are logged and reported as None
    (or False for the health probe) instead of raising.
    """

    def __init__(
        self,
        *,
        base_url: str,
        transport: EnrichmentHttpTransportPort | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        base_url_value = base_url.strip()
        if not base_url_value:
            raise ValueError("base_url must be a non-empty string")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._base_url = base_url_value.rstrip("/")
        self._transport = transport or UrllibEnrichmentHttpTransport()
        self._timeout_seconds = timeout_seconds

    async def generate_insights(
        self,
        text: str,
        *,
        correlation_id: str | None = None,
    ) -> NoteInsights | None:
        """Return sentiment, tags and engagement level for the text, or None."""

        data = await self._post_analysis(
            operation="insights",
            path="/api/ai/insights",
            text=text,
            correlation_id=correlation_id,
        )
        if data is None:
            return None
        try:
            return _parse_insights(data)
        except EnrichmentAdapterError as error:
            logger.warning("insights response rejected: %s", error)
            return None

    async def analyze_sentiment(
        self,
        text: str,
        *,
        correlation_id: str | None = None,
    ) -> SentimentAnalysis | None:
        data = await self._post_analysis(
            operation="sentiment",
            path="/api/ai/sentiment",
            text=text,
            correlation_id=correlation_id,
        )
        if data is None:
            return None
        try:
            return SentimentAnalysis(
                score=_require_score(data.get("score")),
                label=_optional_str(data.get("label", data.get("sentiment"))),
                confidence=_optional_float(data.get("confidence")),
            )
        except EnrichmentAdapterError as error:
            logger.warning("sentiment response rejected: %s", error)
            return None

    async def extract_tags(
        self,
        text: str,
        *,
        correlation_id: str | None = None,
    ) -> tuple[str, ...] | None:
        data = await self._post_analysis(
            operation="tags",
            path="/api/ai/tags",
            text=text,
            correlation_id=correlation_id,
        )
        if data is None:
            return None
        try:
            return _require_tags(data.get("tags"))
        except EnrichmentAdapterError as error:
            logger.warning("tags response rejected: %s", error)
            return None

    async def is_healthy(self) -> bool:
        """Return whether the service health endpoint answers with a 2xx status."""

        try:
            response = await self._send(method="GET", path="/health", headers={}, body=None)
        except EnrichmentAdapterError as error:
            logger.warning("enrichment service health check failed: %s", error)
            return False
        return 200 <= response.status_code < 300

    async def _post_analysis(
        self,
        *,
        operation: str,
        path: str,
        text: str,
        correlation_id: str | None,
    ) -> Mapping[str, Any] | None:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if correlation_id:
            headers[CORRELATION_ID_HEADER] = correlation_id
        body = json.dumps({"text": text}, ensure_ascii=False).encode("utf-8")

        try:
            response = await self._send(method="POST", path=path, headers=headers, body=body)
        except EnrichmentAdapterError as error:
            logger.error("error calling %s endpoint: %s", operation, error)
            return None

        if response.status_code < 200 or response.status_code >= 300:
            logger.warning("%s analysis failed with status %d", operation, response.status_code)
            return None

        try:
            return _extract_envelope_data(response.body_bytes)
        except EnrichmentAdapterError as error:
            logger.warning("%s analysis returned error: %s", operation, error)
            return None

    async def _send(
        self,
        *,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> EnrichmentHttpResponse:
        url = f"{self._base_url}{path}"
        try:
            return await asyncio.wait_for(
                self._transport.request(
                    method=method,
                    url=url,
                    headers=headers,
                    body=body,
                    timeout_seconds=self._timeout_seconds,
                ),
                timeout=self._timeout_seconds,
            )
        except TimeoutError as error:
            raise EnrichmentAdapterError(
                f"{method} {path} timed out after {self._timeout_seconds}s"
            ) from error
        except EnrichmentAdapterError:
            raise
        except Exception as error:  # noqa: BLE001
            raise EnrichmentAdapterError(f"{method} {path} transport failure: {error}") from error


def _extract_envelope_data(payload: bytes) -> Mapping[str, Any]:
    try:
        decoded = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise EnrichmentAdapterError("invalid JSON payload") from error
    if not isinstance(decoded, Mapping):
        raise EnrichmentAdapterError("non-object JSON payload")

    if decoded.get("success") is not True:
        error = decoded.get("error")
        message = error.get("message") if isinstance(error, Mapping) else None
        raise EnrichmentAdapterError(str(message or "service reported failure"))

    data = decoded.get("data")
    if not isinstance(data, Mapping):
        raise EnrichmentAdapterError("envelope missing data object")
    return data


def _parse_insights(data: Mapping[str, Any]) -> NoteInsights:
    return NoteInsights(
        sentiment_score=_require_score(data.get("sentimentScore")),
        tags=_require_tags(data.get("tags")),
        engagement_level=_parse_engagement_level(data.get("engagementLevel")),
        sentiment_label=_optional_str(data.get("sentimentLabel", data.get("sentiment"))),
        summary=_optional_str(data.get("summary")),
    )


def _require_score(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise EnrichmentAdapterError("sentiment score missing or not numeric")
    score = float(value)
    if not -1.0 <= score <= 1.0:
        raise EnrichmentAdapterError(f"sentiment score out of range: {score}")
    return score


def _require_tags(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise EnrichmentAdapterError("tags missing or not a list")
    return tuple(str(tag) for tag in value if isinstance(tag, str))


def _parse_engagement_level(value: object) -> EngagementLevel | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return EngagementLevel(value)
    except ValueError:
        logger.warning("ignoring unknown engagement level %r", value)
        return None


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _optional_float(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)
