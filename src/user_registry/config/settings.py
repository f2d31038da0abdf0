"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveFloat = Annotated[float, Field(gt=0.0)]
PortInt = Annotated[int, Field(gt=0, le=65_535)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    user_data_file_path: NonEmptyStr = Field(
        default="data/users.json",
        validation_alias="USER_DATA_FILE_PATH",
    )
    enrichment_service_url: HttpUrl | None = Field(
        default=None,
        validation_alias="ENRICHMENT_SERVICE_URL",
    )
    enrichment_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        validation_alias="ENRICHMENT_TIMEOUT_SECONDS",
    )
    api_host: NonEmptyStr = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: PortInt = Field(default=8000, validation_alias="API_PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()
