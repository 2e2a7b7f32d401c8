"""
Tests for configuration management in `vitalwatch/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Engine and simulator settings from the environment
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

from vitalwatch.config import (
    AppConfig,
    EngineConfig,
    LoggingConfig,
    get_config,
    load_config_from_env,
)
from vitalwatch.observability import configure_logging

ENV_VARS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "TICK_INTERVAL_SECONDS",
    "HISTORY_CAPACITY",
    "LOG_CAPACITY",
    "COUNTDOWN_SECONDS",
    "SIMULATOR_ENABLED",
    "SIMULATOR_SEED",
    "SIMULATOR_MODE",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear the get_config cache and any settings leaking in from a .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.engine.tick_interval_seconds == 1.0
    assert config.engine.history_capacity == 60
    assert config.engine.log_capacity == 50
    assert config.engine.countdown_seconds == 300
    assert config.simulator.enabled is True
    assert config.simulator.seed is None
    assert config.simulator.mode == "regime"


@pytest.mark.parametrize(
    "raw, expected",
    [("dev", "development"), ("stage", "staging"), ("PRODUCTION", "production")],
)
def test_environment_aliases(monkeypatch: pytest.MonkeyPatch, raw: str, expected: str) -> None:
    monkeypatch.setenv("ENVIRONMENT", raw)
    config = load_config_from_env()
    assert config.environment == expected


def test_production_uses_json_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")

    config = load_config_from_env()

    assert config.debug is False
    assert config.logging.format == "json"


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")

    # Unknown level should coerce to INFO
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    config = load_config_from_env()
    assert config.logging.level == "INFO"

    # Known level should pass through
    monkeypatch.setenv("LOG_LEVEL", "error")
    config = load_config_from_env()
    assert config.logging.level == "ERROR"


def test_engine_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TICK_INTERVAL_SECONDS", "0.25")
    monkeypatch.setenv("HISTORY_CAPACITY", "120")
    monkeypatch.setenv("LOG_CAPACITY", "20")
    monkeypatch.setenv("COUNTDOWN_SECONDS", "60")

    config = load_config_from_env()

    assert config.engine.tick_interval_seconds == 0.25
    assert config.engine.history_capacity == 120
    assert config.engine.log_capacity == 20
    assert config.engine.countdown_seconds == 60


def test_simulator_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SIMULATOR_ENABLED", "no")
    monkeypatch.setenv("SIMULATOR_SEED", "1234")

    config = load_config_from_env()

    assert config.simulator.enabled is False
    assert config.simulator.seed == 1234


@pytest.mark.parametrize("raw, expected", [("Scenario", "scenario"), ("bogus", "regime")])
def test_simulator_mode_from_env(monkeypatch: pytest.MonkeyPatch, raw: str, expected: str) -> None:
    monkeypatch.setenv("SIMULATOR_MODE", raw)
    assert load_config_from_env().simulator.mode == expected


def test_invalid_capacity_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HISTORY_CAPACITY", "0")
    with pytest.raises(ValueError):
        load_config_from_env()


def test_get_config_cache() -> None:
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache


def test_app_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        AppConfig(
            environment="production",
            debug=True,
            engine=EngineConfig(),
            logging=LoggingConfig(),
        )


@pytest.mark.parametrize("fmt", ["json", "console"])
def test_configure_logging(fmt: str) -> None:
    try:
        configure_logging(LoggingConfig(level="DEBUG", format=fmt))
        assert structlog.is_configured()
    finally:
        structlog.reset_defaults()
