from __future__ import annotations

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from resilience_core.circuit_breaker.breaker import CircuitBreakerConfig
from resilience_core.logging import configure_structlog, get_log_level_value

BREAKER_ENV_PREFIX = "CIRCUIT_BREAKER_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class BreakerSettings(BaseSettings):
    """Environment-driven circuit breaker thresholds and log level."""

    model_config = prefixed_settings_config(BREAKER_ENV_PREFIX)

    request_count_threshold: int = Field(default=10, ge=1)
    allowed_error_percentage: float = Field(default=50.0, ge=0, le=100)
    test_wait_milliseconds: int = Field(default=5000, ge=0)
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip().upper()
        get_log_level_value(normalized)
        return normalized

    def configure_logging(self) -> structlog.stdlib.BoundLogger:
        """Configure structlog at ``log_level`` and return the root logger."""
        return configure_structlog(log_level=self.log_level)

    def to_config(self) -> CircuitBreakerConfig:
        """Build the breaker configuration from these settings."""
        return CircuitBreakerConfig(
            request_count_threshold=self.request_count_threshold,
            allowed_error_percentage=self.allowed_error_percentage,
            test_wait_milliseconds=self.test_wait_milliseconds,
        )
