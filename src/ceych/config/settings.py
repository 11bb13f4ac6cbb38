"""Settings and configuration management."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger = logging.getLogger(__name__)

# YAML config search paths (checked in order, first found wins)
_YAML_SEARCH_PATHS = [
    Path("ceych.yaml"),
    Path("config/ceych.yaml"),
    Path.home() / ".config" / "ceych" / "ceych.yaml",
]


def _find_yaml_config() -> Path | None:
    """Find the first ceych.yaml in search paths."""
    for path in _YAML_SEARCH_PATHS:
        if path.is_file():
            return path
    return None


class Settings(BaseSettings):
    """Ceych settings.

    Priority chain: init kwargs > env vars (CEYCH_*) > .env file > ceych.yaml > defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="CEYCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Class-level cache for the resolved YAML path (not a pydantic field)
    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
        ]

        yaml_path = _find_yaml_config()
        cls._yaml_path = yaml_path
        if yaml_path:
            sources.append(
                YamlConfigSettingsSource(
                    settings_cls,
                    yaml_file=yaml_path,
                    yaml_file_encoding="utf-8",
                )
            )

        sources.append(file_secret_settings)
        return tuple(sources)

    # Caching
    default_ttl: float = Field(30, description="Default TTL in seconds for wrapped functions")
    swallow_write_timeouts: bool = Field(
        True,
        description="Return the computed value when a cache write times out",
    )
    memory_max_size: int = Field(10000, description="Maximum entries held by the memory cache")

    # Redis
    redis_url: str | None = Field(None, description="Redis connection URL")
    redis_prefix: str = Field("ceych:", description="Key prefix for Redis entries")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("text", description="Log format: 'text' or 'json'")
    sanitize_logs: bool = Field(True, description="Redact credentials in URLs from logs")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
