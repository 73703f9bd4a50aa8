"""
Tests for configuration management in `aura/config.py` and logging setup.

Covers:
- Environment parsing and debug defaults
- Enrichment opt-in and key handling
- Base URL validation and normalisation
- Logging level coercion to the expected Literal
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from pydantic import ValidationError

from aura.config import (
    DEFAULT_BASE_URL,
    AppConfig,
    ControllerConfig,
    EnrichmentConfig,
    LoggingConfig,
    get_config,
    load_config_from_env,
)
from aura.observability import configure_logging

ENV_VARS = [
    "ENVIRONMENT",
    "LOG_LEVEL",
    "LLM_API_KEY",
    "LLM_BASE_URL",
    "LLM_MODEL",
    "LLM_ENABLED",
    "LLM_DEBOUNCE_SECONDS",
    "LLM_TIMEOUT_SECONDS",
    "SIMULATION_STEP_DELAY_SECONDS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test from an empty environment and a cold config cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_dev_defaults() -> None:
    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.logging.level == "INFO"
    assert config.enrichment.enabled is False
    assert config.enrichment.is_available is False
    assert config.enrichment.base_url == DEFAULT_BASE_URL
    assert config.controller.debounce_seconds == 0.6
    assert config.controller.request_timeout_seconds == 30.0
    assert config.simulation.step_delay_seconds == 0.12


def test_load_config_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "prod")

    config = load_config_from_env()

    assert config.environment == "production"
    assert config.debug is False
    assert config.logging.format == "json"


def test_enrichment_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_ENABLED", "true")
    monkeypatch.setenv("LLM_API_KEY", "  sk-live  ")
    monkeypatch.setenv("LLM_BASE_URL", "https://llm.example.test/v1/")
    monkeypatch.setenv("LLM_MODEL", "small-model")
    monkeypatch.setenv("LLM_DEBOUNCE_SECONDS", "0.25")

    config = load_config_from_env()

    assert config.enrichment.api_key == "sk-live"
    assert config.enrichment.is_available is True
    assert config.enrichment.api_root == "https://llm.example.test/v1"
    assert config.enrichment.model == "small-model"
    assert config.controller.debounce_seconds == 0.25


@pytest.mark.parametrize("value,expected", [("1", True), ("yes", True), ("off", False), ("", False)])
def test_enabled_flag_parsing(monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
    monkeypatch.setenv("LLM_ENABLED", value)

    assert load_config_from_env().enrichment.enabled is expected


def test_enabled_without_key_is_unavailable() -> None:
    assert EnrichmentConfig(enabled=True).is_available is False


def test_log_level_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert load_config_from_env().logging.level == "DEBUG"

    monkeypatch.setenv("LOG_LEVEL", "chatty")
    assert load_config_from_env().logging.level == "INFO"


def test_invalid_base_url_rejected() -> None:
    with pytest.raises(ValidationError, match="must start with http"):
        EnrichmentConfig(base_url="ftp://llm.example.test")


def test_negative_debounce_rejected() -> None:
    with pytest.raises(ValidationError):
        ControllerConfig(debounce_seconds=-1)


def test_debug_only_in_development() -> None:
    with pytest.raises(ValidationError, match="debug mode is only allowed"):
        AppConfig(environment="production", debug=True)


def test_get_config_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_config()
    monkeypatch.setenv("LLM_MODEL", "other-model")

    assert get_config() is first

    get_config.cache_clear()
    assert get_config().enrichment.model == "other-model"


@pytest.mark.parametrize("fmt", ["json", "console"])
def test_configure_logging_accepts_both_formats(fmt: str) -> None:
    configure_logging(LoggingConfig(level="WARNING", format=fmt))
    configure_logging()
