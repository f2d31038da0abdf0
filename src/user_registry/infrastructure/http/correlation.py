"""Correlation id middleware binding one id per request for logs and outbound calls."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from user_registry.infrastructure.logging import bind_correlation_id, reset_correlation_id

CORRELATION_ID_HEADER = "X-Correlation-ID"
logger = logging.getLogger(__name__)


def install_correlation_id_middleware(app: FastAPI) -> None:
    """Read or generate `X-Correlation-ID`, expose it on request state and echo it back."""

    @app.middleware("http")
    async def correlation_id_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id
        token = bind_correlation_id(correlation_id)
        try:
            logger.debug("request started: %s %s", request.method, request.url.path)
            response = await call_next(request)
            logger.debug(
                "request completed: %s %s status %d",
                request.method,
                request.url.path,
                response.status_code,
            )
        finally:
            reset_correlation_id(token)
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response


def request_correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)
