from __future__ import annotations

import logging
import sys
from typing import Any, cast

import pytest
import structlog
from pydantic import ValidationError

from resilience_core.circuit_breaker import CircuitBreakerConfig
from resilience_core.settings import BreakerSettings, prefixed_settings_config


def _build_settings(**overrides: object) -> BreakerSettings:
    return BreakerSettings(**cast(Any, overrides))


def test_breaker_settings_defaults_match_config_defaults() -> None:
    settings = _build_settings()

    assert settings.to_config() == CircuitBreakerConfig()
    assert settings.log_level == "INFO"


def test_breaker_settings_read_prefixed_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("CIRCUIT_BREAKER_REQUEST_COUNT_THRESHOLD", "3")
    monkeypatch.setenv("circuit_breaker_allowed_error_percentage", "25.5")
    monkeypatch.setenv("CIRCUIT_BREAKER_TEST_WAIT_MILLISECONDS", "750")
    monkeypatch.setenv("CIRCUIT_BREAKER_LOG_LEVEL", " debug ")

    settings = BreakerSettings()
    config = settings.to_config()

    assert config.request_count_threshold == 3
    assert config.allowed_error_percentage == 25.5
    assert config.test_wait_milliseconds == 750
    assert settings.log_level == "DEBUG"


def test_breaker_settings_override_fields_individually() -> None:
    config = _build_settings(test_wait_milliseconds=100).to_config()

    assert config.request_count_threshold == 10
    assert config.allowed_error_percentage == 50.0
    assert config.test_wait_milliseconds == 100


@pytest.mark.parametrize(
    "overrides",
    [
        {"request_count_threshold": 0},
        {"allowed_error_percentage": 101},
        {"allowed_error_percentage": -0.5},
        {"test_wait_milliseconds": -1},
        {"log_level": "TRACE"},
    ],
)
def test_breaker_settings_reject_invalid_values(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        _build_settings(**overrides)


def test_breaker_settings_configure_logging_at_configured_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)
    settings = _build_settings(log_level="warning")

    logger = settings.configure_logging()

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert logger is not None


def test_prefixed_settings_config_sets_prefix_case_insensitive() -> None:
    config = prefixed_settings_config("ORDERS_BREAKER_")

    assert config["env_prefix"] == "ORDERS_BREAKER_"
    assert config["case_sensitive"] is False
