"""user-api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from user_registry.application.services.user_service import UserService
from user_registry.config.settings import Settings, load_settings
from user_registry.infrastructure.enrichment.http_client import EnrichmentHttpClient
from user_registry.infrastructure.http.correlation import install_correlation_id_middleware
from user_registry.infrastructure.http.health_router import build_health_router
from user_registry.infrastructure.http.user_router import build_user_router
from user_registry.infrastructure.logging import configure_logging
from user_registry.infrastructure.storage.json_user_repository import JsonUserRepository

logger = logging.getLogger(__name__)


def build_enrichment_client(settings: Settings) -> EnrichmentHttpClient | None:
    """Build the note enrichment client, or None when no service URL is configured."""

    if settings.enrichment_service_url is None:
        logger.warning("enrichment service not configured, users are created without insights")
        return None

    logger.info("enrichment service configured with base url %s", settings.enrichment_service_url)
    return EnrichmentHttpClient(
        base_url=str(settings.enrichment_service_url),
        timeout_seconds=settings.enrichment_timeout_seconds,
    )


def create_app(
    *,
    settings: Settings | None = None,
    user_repository: JsonUserRepository | None = None,
    enrichment_client: EnrichmentHttpClient | None = None,
) -> FastAPI:
    """Create FastAPI app serving user CRUD and health probe routes."""

    if settings is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)

    if user_repository is None:
        user_repository = JsonUserRepository(Path(settings.user_data_file_path))
    if enrichment_client is None:
        enrichment_client = build_enrichment_client(settings)

    user_service = UserService(users=user_repository, enrichment=enrichment_client)
    repository = user_repository

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await repository.initialize()
        logger.info("user repository initialized from %s", repository.file_path)
        yield

    app = FastAPI(
        title="User Registry API",
        description="User management API with optional note enrichment",
        lifespan=lifespan,
    )
    install_correlation_id_middleware(app)
    app.include_router(build_user_router(user_service=user_service))
    app.include_router(
        build_health_router(
            user_data_file_path=repository.file_path,
            enrichment_client=enrichment_client,
        )
    )
    return app


def run_asgi_server(*, host: str, port: int) -> None:
    """Run user-api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.user_api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run user-api runtime process."""

    settings = load_settings()
    run_asgi_server(host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
