"""Readiness probe for the JSON user file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

logger = logging.getLogger(__name__)


class HealthStatus(StrEnum):
    """Probe outcomes ordered from best to worst."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class HealthCheckResult:
    status: HealthStatus
    description: str


def check_file_storage(file_path: Path) -> HealthCheckResult:
    """Report whether the user file is present, readable and writable."""

    directory = file_path.parent
    try:
        if not directory.is_dir():
            return HealthCheckResult(
                status=HealthStatus.DEGRADED,
                description=f"data directory does not exist: {directory}",
            )
        if not file_path.exists():
            return HealthCheckResult(
                status=HealthStatus.DEGRADED,
                description=(
                    f"user data file does not exist yet: {file_path}; "
                    "it will be created on first use"
                ),
            )

        with file_path.open("rb"):
            pass

        if not os.access(file_path, os.W_OK):
            return HealthCheckResult(
                status=HealthStatus.UNHEALTHY,
                description=f"user data file is read-only: {file_path}",
            )
    except PermissionError as error:
        logger.error("file storage health check failed, access denied: %s", error)
        return HealthCheckResult(
            status=HealthStatus.UNHEALTHY,
            description=f"access denied to file storage: {error}",
        )
    except OSError as error:
        logger.error("file storage health check failed, io error: %s", error)
        return HealthCheckResult(
            status=HealthStatus.UNHEALTHY,
            description=f"io error accessing file storage: {error}",
        )

    logger.debug("file storage health check passed for %s", file_path)
    return HealthCheckResult(
        status=HealthStatus.HEALTHY,
        description=f"file storage is accessible: {file_path}",
    )
