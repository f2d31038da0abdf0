"""FastAPI router for liveness and readiness probes."""

from __future__ import annotations

import asyncio
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from user_registry.application.dto.user_models import HealthCheckEntry, HealthResponse
from user_registry.infrastructure.enrichment.http_client import EnrichmentHttpClient
from user_registry.infrastructure.storage.file_storage_health import (
    HealthCheckResult,
    HealthStatus,
    check_file_storage,
)

_STATUS_RANK = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}


def build_health_router(
    *,
    user_data_file_path: Path,
    enrichment_client: EnrichmentHttpClient | None = None,
) -> APIRouter:
    """Build router exposing `/health` (all checks) and `/health/ready` (storage only)."""

    router = APIRouter(tags=["health"])

    async def _file_storage() -> HealthCheckResult:
        return await asyncio.to_thread(check_file_storage, user_data_file_path)

    async def _enrichment_service(client: EnrichmentHttpClient) -> HealthCheckResult:
        if await client.is_healthy():
            return HealthCheckResult(
                status=HealthStatus.HEALTHY,
                description="enrichment service reachable",
            )
        # Enrichment is optional; an outage only degrades the service.
        return HealthCheckResult(
            status=HealthStatus.DEGRADED,
            description="enrichment service unreachable",
        )

    @router.get("/health", response_model=HealthResponse)
    async def health() -> JSONResponse:
        checks = {"file_storage": await _file_storage()}
        if enrichment_client is not None:
            checks["enrichment_service"] = await _enrichment_service(enrichment_client)
        return _render(checks)

    @router.get("/health/ready", response_model=HealthResponse)
    async def ready() -> JSONResponse:
        return _render({"file_storage": await _file_storage()})

    return router


def _render(checks: dict[str, HealthCheckResult]) -> JSONResponse:
    overall = max(
        (result.status for result in checks.values()),
        key=lambda item: _STATUS_RANK[item],
    )
    body = HealthResponse(
        status=overall.value,
        checks={
            name: HealthCheckEntry(status=result.status.value, description=result.description)
            for name, result in checks.items()
        },
    )
    status_code = 503 if overall is HealthStatus.UNHEALTHY else 200
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
