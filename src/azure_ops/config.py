"""Configuration management for the Azure operations toolkit."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="WARNING", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class RetrySettings(BaseModel):
    base_delay_seconds: int = Field(
        default=2,
        ge=1,
        le=600,
        description="Initial backoff delay; doubled after every retryable failure.",
    )
    max_attempts: int = Field(default=3, ge=1, le=20)


class ProbeSettings(BaseModel):
    health_timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    url_timeout_seconds: float = Field(default=10.0, gt=0, le=300)
    max_redirects: int = Field(default=10, ge=0, le=50)


class AzureSettings(BaseModel):
    cli_path: str = Field(default="az", description="Azure CLI executable")

    @field_validator("cli_path")
    @classmethod
    def _validate_cli_path(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("cli_path must not be empty")
        return value


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    azure: AzureSettings = Field(default_factory=AzureSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "retry_base_delay": "RETRY_BASE_DELAY",
    "retry_max_attempts": "RETRY_MAX_ATTEMPTS",
    "health_timeout": "HEALTH_TIMEOUT_SECONDS",
    "url_timeout": "URL_TIMEOUT_SECONDS",
    "max_redirects": "PROBE_MAX_REDIRECTS",
    "cli_path": "AZURE_CLI_PATH",
}


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"], "").strip()

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": str(Path(log_file_env).resolve()) if log_file_env else None,
        },
        "retry": {
            "base_delay_seconds": _env_int(
                ENV_KEYS["retry_base_delay"],
                RetrySettings().base_delay_seconds,
            ),
            "max_attempts": _env_int(
                ENV_KEYS["retry_max_attempts"],
                RetrySettings().max_attempts,
            ),
        },
        "probe": {
            "health_timeout_seconds": _env_float(
                ENV_KEYS["health_timeout"],
                ProbeSettings().health_timeout_seconds,
            ),
            "url_timeout_seconds": _env_float(
                ENV_KEYS["url_timeout"],
                ProbeSettings().url_timeout_seconds,
            ),
            "max_redirects": _env_int(
                ENV_KEYS["max_redirects"],
                ProbeSettings().max_redirects,
            ),
        },
        "azure": {
            "cli_path": os.getenv(ENV_KEYS["cli_path"], AzureSettings().cli_path),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
