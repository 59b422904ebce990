"""Configuration management for the host monitor."""

import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError


class MonitorConfig(BaseModel):
    """Main configuration for the host monitor service."""

    # Dashboard document
    config_document_path: str = Field(
        default="data/config.json",
        description="Path to the dashboard JSON document holding links and widgets"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Probe defaults, overridable per document via settings.monitoringSettings
    default_interval_seconds: int = Field(default=60, ge=1, description="Default check interval in seconds")
    timeout_ms: int = Field(default=5000, ge=100, description="Timeout for a single probe attempt")
    retries: int = Field(default=2, ge=0, le=10, description="Extra attempts per check before reporting offline")
    test_timeout_ms: int = Field(default=5000, ge=100, description="Timeout for ad-hoc host tests")

    # HTTP API
    api_host: str = Field(default="0.0.0.0", description="Address the API binds to")
    api_port: int = Field(default=3000, ge=1, le=65535, description="Port the API listens on")
    status_poll_seconds: int = Field(default=30, ge=1, description="Recommended UI poll cadence")


class MonitorDefaults(BaseModel):
    """Global probe parameters applied to targets that do not set their own."""
    interval_seconds: int = Field(default=60, ge=1)
    timeout_ms: int = Field(default=5000, ge=100)
    retries: int = Field(default=2, ge=0, le=10)

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "MonitorDefaults":
        return cls(
            interval_seconds=config.default_interval_seconds,
            timeout_ms=config.timeout_ms,
            retries=config.retries,
        )

    def overlay(self, monitoring_settings: Any) -> "MonitorDefaults":
        """Apply a document's ``monitoringSettings`` block on top of these defaults.

        Unset, non-numeric or out-of-range values keep the current default.
        """
        if not isinstance(monitoring_settings, dict):
            return self

        keys = {
            "interval_seconds": "defaultInterval",
            "timeout_ms": "timeout",
            "retries": "retries",
        }
        data = self.model_dump()
        for field_name, doc_key in keys.items():
            raw = monitoring_settings.get(doc_key)
            if raw is None or isinstance(raw, bool):
                continue
            try:
                data[field_name] = int(raw)
            except (TypeError, ValueError):
                continue

        try:
            return MonitorDefaults(**data)
        except ValidationError:
            return self


def load_config(config_path: Optional[str] = None) -> MonitorConfig:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("DASHMA_MONITOR_CONFIG", "config/monitor.yaml")

    config_data: Dict[str, Any] = {}

    # Load from file if exists
    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read {config_path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigError(f"{config_path} must contain a mapping")

    # Override with environment variables
    env_overrides = {
        "config_document_path": os.getenv("DASHMA_CONFIG_DOCUMENT"),
        "log_level": os.getenv("LOG_LEVEL"),
        "default_interval_seconds": os.getenv("DASHMA_DEFAULT_INTERVAL"),
        "timeout_ms": os.getenv("DASHMA_PING_TIMEOUT_MS"),
        "retries": os.getenv("DASHMA_PING_RETRIES"),
        "api_host": os.getenv("DASHMA_API_HOST"),
        "api_port": os.getenv("DASHMA_API_PORT"),
    }

    # Filter out None values; pydantic handles numeric coercion
    for key, value in env_overrides.items():
        if value is not None and value.strip():
            config_data[key] = value.strip()

    try:
        return MonitorConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid monitor configuration: {e}") from e


def get_config() -> MonitorConfig:
    """Get the global configuration instance."""
    return load_config()
