"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (PAGESCHEMA__FETCH__TIMEOUT=5)
  3. pageschema.yaml        (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional. All durations are in seconds.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from pageschema import __version__

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("pageschema")
_DEFAULT_USER_AGENT = f"pageschema/{__version__} (Schema Generator)"

DEFAULT_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ETIMEDOUT",
    "ECONNRESET",
    "ENOTFOUND",
    "FETCH_FAILED",
    "FETCH_TIMEOUT",
    "TimeoutError",
    "ConnectionResetError",
    "ConnectError",
)


def _find_config_file() -> str | None:
    """Return the path of the first pageschema.yaml found, or None."""
    candidates = [
        Path("pageschema.yaml"),
        Path(platformdirs.user_config_dir("pageschema")) / "pageschema.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class FetchSettings(BaseModel):
    user_agent: str = _DEFAULT_USER_AGENT
    timeout: float = 10.0
    max_retries: int = 2
    backoff_base: float = 1.0
    max_redirects: int = 5


class CacheSettings(BaseModel):
    enabled: bool = True
    ttl_seconds: float = 3600.0
    max_size: int = 100
    storage: Literal["memory", "file"] = "memory"
    cache_dir: str = _DEFAULT_CACHE_DIR


class RateLimitSettings(BaseModel):
    enabled: bool = True
    max_requests: int = 10
    window_seconds: float = 60.0
    strategy: Literal["sliding", "fixed"] = "sliding"
    backoff: Literal["exponential", "linear"] = "exponential"
    max_retries: int = 3


class RecoverySettings(BaseModel):
    enabled: bool = True
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    retryable_errors: list[str] = Field(default_factory=lambda: list(DEFAULT_RETRYABLE_ERRORS))


class GeneratorSettings(BaseModel):
    concurrency: int = 3


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: PAGESCHEMA__CACHE__STORAGE=file
        env_prefix="PAGESCHEMA__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    fetch: FetchSettings = FetchSettings()
    cache: CacheSettings = CacheSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    recovery: RecoverySettings = RecoverySettings()
    generator: GeneratorSettings = GeneratorSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
            # dotenv and file secrets are not read
        )
