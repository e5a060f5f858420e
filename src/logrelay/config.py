"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation.
An optional config.yaml supplies defaults; environment variables win.
"""

import json
import os
from functools import lru_cache
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = os.environ.get("LOGRELAY_CONFIG_FILE")

    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",  # Current directory
            "../../config.yaml",  # Project root from src/logrelay
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class BufferSettings(BaseSettings):
    """Buffer (queue) configuration."""

    backend: Literal["sqs", "memory"] = Field(default="sqs", description="Buffer backend")
    queue_url: str = Field(default="", description="SQS queue URL (required for the sqs backend)")
    region: Optional[str] = Field(default=None, description="AWS region")
    endpoint_url: Optional[str] = Field(default=None, description="Endpoint override (e.g. LocalStack)")
    max_messages: int = Field(default=10, ge=1, le=10, description="Messages per receive call")
    wait_time_seconds: int = Field(default=20, ge=0, le=20, description="Long-poll wait time")
    visibility_timeout_seconds: Optional[int] = Field(
        default=None,
        description="Lease duration for received messages (queue default when unset)"
    )

    @property
    def is_configured(self) -> bool:
        return self.backend == "memory" or bool(self.queue_url.strip())

    model_config = SettingsConfigDict(env_prefix="LOGRELAY_BUFFER_")


class StoreSettings(BaseSettings):
    """Processed record store configuration."""

    backend: Literal["dynamodb", "memory"] = Field(default="dynamodb", description="Store backend")
    table_name: str = Field(default="", description="DynamoDB table name (required for the dynamodb backend)")
    region: Optional[str] = Field(default=None, description="AWS region")
    endpoint_url: Optional[str] = Field(default=None, description="Endpoint override (e.g. LocalStack)")

    @property
    def is_configured(self) -> bool:
        return self.backend == "memory" or bool(self.table_name.strip())

    model_config = SettingsConfigDict(env_prefix="LOGRELAY_STORE_")


class ProcessingSettings(BaseSettings):
    """Worker processing configuration."""

    ms_per_char: int = Field(default=50, ge=0, description="Artificial delay per character (ms)")
    max_delay_ms: int = Field(default=10000, ge=0, description="Delay cap (ms)")
    redaction_marker: str = Field(default="[REDACTED]", description="Replacement for sensitive fragments")

    @field_validator("redaction_marker")
    def validate_marker(cls, v: str) -> str:
        """Markers containing digits could be re-matched by the redaction pattern."""
        if any(ch.isdigit() for ch in v):
            raise ValueError("redaction_marker must not contain digits")
        return v

    model_config = SettingsConfigDict(env_prefix="LOGRELAY_PROCESSING_")


class WorkerSettings(BaseSettings):
    """Delivery loop configuration."""

    embedded: bool = Field(default=False, description="Run the worker loop inside the API process")
    idle_sleep_seconds: float = Field(default=1.0, ge=0, description="Pause after an empty receive")

    model_config = SettingsConfigDict(env_prefix="LOGRELAY_WORKER_")


class Settings(BaseSettings):
    """Main application settings."""

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    # Component settings
    buffer: BufferSettings = Field(default_factory=BufferSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    model_config = SettingsConfigDict(env_prefix="LOGRELAY_", case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""

    # Load config file data
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    settings = Settings()
    return settings


_CONFIG_ENV_MAPPINGS = {
    ("server", "host"): "LOGRELAY_HOST",
    ("server", "port"): "LOGRELAY_PORT",
    ("server", "debug"): "LOGRELAY_DEBUG",
    ("server", "log_level"): "LOGRELAY_LOG_LEVEL",
    ("buffer", "backend"): "LOGRELAY_BUFFER_BACKEND",
    ("buffer", "queue_url"): "LOGRELAY_BUFFER_QUEUE_URL",
    ("buffer", "region"): "LOGRELAY_BUFFER_REGION",
    ("buffer", "endpoint_url"): "LOGRELAY_BUFFER_ENDPOINT_URL",
    ("buffer", "max_messages"): "LOGRELAY_BUFFER_MAX_MESSAGES",
    ("buffer", "wait_time_seconds"): "LOGRELAY_BUFFER_WAIT_TIME_SECONDS",
    ("buffer", "visibility_timeout_seconds"): "LOGRELAY_BUFFER_VISIBILITY_TIMEOUT_SECONDS",
    ("store", "backend"): "LOGRELAY_STORE_BACKEND",
    ("store", "table_name"): "LOGRELAY_STORE_TABLE_NAME",
    ("store", "region"): "LOGRELAY_STORE_REGION",
    ("store", "endpoint_url"): "LOGRELAY_STORE_ENDPOINT_URL",
    ("processing", "ms_per_char"): "LOGRELAY_PROCESSING_MS_PER_CHAR",
    ("processing", "max_delay_ms"): "LOGRELAY_PROCESSING_MAX_DELAY_MS",
    ("processing", "redaction_marker"): "LOGRELAY_PROCESSING_REDACTION_MARKER",
    ("worker", "embedded"): "LOGRELAY_WORKER_EMBEDDED",
    ("worker", "idle_sleep_seconds"): "LOGRELAY_WORKER_IDLE_SLEEP_SECONDS",
}


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    for (section, key), env_var in _CONFIG_ENV_MAPPINGS.items():
        if env_var in os.environ:
            continue
        value = (config_data.get(section) or {}).get(key)
        if value is None:
            continue
        if isinstance(value, bool):
            os.environ[env_var] = json.dumps(value)
        else:
            os.environ[env_var] = str(value)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
