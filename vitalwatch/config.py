"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class EngineConfig(BaseModel):
    """Core monitoring engine configuration."""

    tick_interval_seconds: float = Field(
        default=1.0, gt=0.0, description="Interval between scheduler ticks"
    )
    history_capacity: int = Field(
        default=60, gt=0, description="Readings kept per patient for charting"
    )
    log_capacity: int = Field(default=50, gt=0, description="Entries kept per event log")
    countdown_seconds: int = Field(
        default=300, gt=0, description="Response window once a patient reaches level 3"
    )
    timeline_capacity: int = Field(
        default=10, gt=0, description="Escalation timeline entries kept per patient"
    )


class SimulatorConfig(BaseModel):
    """Synthetic vitals source configuration."""

    enabled: bool = Field(default=True, description="Use the built-in vitals simulator")
    mode: Literal["regime", "scenario"] = Field(
        default="regime",
        description="regime: independent episode per tick; scenario: smoothed clinical scenarios",
    )
    seed: int | None = Field(default=None, description="Seed for reproducible runs")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    engine: EngineConfig = Field(default_factory=EngineConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _mode_to_literal(val: str) -> Literal["regime", "scenario"]:
        return "scenario" if val.strip().lower() == "scenario" else "regime"

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    def _parse_seed(val: str | None) -> int | None:
        if val is None or not val.strip():
            return None
        return int(val)

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    engine_config = EngineConfig(
        tick_interval_seconds=float(os.getenv("TICK_INTERVAL_SECONDS", "1.0")),
        history_capacity=int(os.getenv("HISTORY_CAPACITY", "60")),
        log_capacity=int(os.getenv("LOG_CAPACITY", "50")),
        countdown_seconds=int(os.getenv("COUNTDOWN_SECONDS", "300")),
    )

    simulator_config = SimulatorConfig(
        enabled=_parse_bool(os.getenv("SIMULATOR_ENABLED"), True),
        mode=_mode_to_literal(os.getenv("SIMULATOR_MODE", "regime")),
        seed=_parse_seed(os.getenv("SIMULATOR_SEED")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        engine=engine_config,
        simulator=simulator_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
