"""Shared logging configuration helpers for long-running processes."""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s"
_NO_CORRELATION_ID = "-"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the correlation id bound to the current request context, if any."""

    return _correlation_id.get()


def bind_correlation_id(correlation_id: str | None) -> Token[str | None]:
    """Bind one correlation id to the current context and return the reset token."""

    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: Token[str | None]) -> None:
    _correlation_id.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Attach the current correlation id to every emitted log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or _NO_CORRELATION_ID
        return True


def configure_logging(*, level: str) -> None:
    """Configure process logging with consistent format and runtime level."""

    normalized_level = level.strip().upper() if level.strip() else "INFO"
    resolved_level = getattr(logging, normalized_level, logging.INFO)

    logging.basicConfig(
        level=resolved_level,
        format=_LOG_FORMAT,
    )
    correlation_filter = CorrelationIdFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(item, CorrelationIdFilter) for item in handler.filters):
            handler.addFilter(correlation_filter)
