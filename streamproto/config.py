"""
streamproto - Configuration

Normalizer settings loaded from the environment.

Environment variables:
    STREAMPROTO_ID_PREFIX               prefix for generated correlation ids
    STREAMPROTO_INCLUDE_CHUNK_IN_ERRORS embed the raw chunk in error frames
    STREAMPROTO_METRICS_ENABLED         record Prometheus metrics
    LOG_LEVEL                           DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_FORMAT                          json or text
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _parse_bool(name: str, default: bool) -> bool:
    """Parse a boolean environment variable."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {name}. Use one of: true, false, 1, 0, yes, no, on, off")


class NormalizerSettings(BaseModel):
    """Runtime settings for the stream normalizer."""

    model_config = ConfigDict(frozen=True)

    id_prefix: str = "chatcmpl-"
    include_chunk_in_errors: bool = True
    metrics_enabled: bool = True
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("id_prefix")
    @classmethod
    def validate_id_prefix(cls, v: str) -> str:
        if "\n" in v or "\r" in v:
            raise ValueError("Invalid STREAMPROTO_ID_PREFIX: must not contain line breaks")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.strip().lower()
        if fmt not in {"json", "text"}:
            raise ValueError("Invalid LOG_FORMAT. Use one of: json, text")
        return fmt

    @classmethod
    def from_env(cls) -> "NormalizerSettings":
        """Build settings from environment variables."""
        return cls(
            id_prefix=os.getenv("STREAMPROTO_ID_PREFIX", "chatcmpl-"),
            include_chunk_in_errors=_parse_bool("STREAMPROTO_INCLUDE_CHUNK_IN_ERRORS", True),
            metrics_enabled=_parse_bool("STREAMPROTO_METRICS_ENABLED", True),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


_settings: Optional[NormalizerSettings] = None


def get_settings() -> NormalizerSettings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = NormalizerSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop cached settings (for testing)."""
    global _settings
    _settings = None
