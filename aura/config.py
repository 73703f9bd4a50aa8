"""
Configuration management with environment variable support and validation.

Design principles:
- Enrichment is opt-in: disabled unless explicitly enabled with a key
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no API keys in code)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


class EnrichmentConfig(BaseModel):
    """Connection settings for the chat-completions message generator."""

    api_key: str = Field(default="", description="Bearer token for the completions endpoint")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="API root, without /chat/...")
    model: str = Field(default=DEFAULT_MODEL, min_length=1, description="Model identifier")
    enabled: bool = Field(default=False, description="Opt-in switch for message enrichment")

    @field_validator("api_key", "model")
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()

    @field_validator("base_url")
    def validate_base_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("Enrichment base URL must start with http:// or https://")
        return v

    @property
    def is_available(self) -> bool:
        """Enrichment runs only when switched on and a key is present."""
        return self.enabled and len(self.api_key) > 0

    @property
    def api_root(self) -> str:
        return self.base_url.rstrip("/")


class ControllerConfig(BaseModel):
    """Timing for the enrichment call controller."""

    debounce_seconds: float = Field(
        default=0.6, ge=0.0, description="Quiet period before a scheduled call fires"
    )
    request_timeout_seconds: float = Field(
        default=30.0, gt=0.0, description="HTTP timeout for a single enrichment call"
    )


class SimulationConfig(BaseModel):
    """Day simulator pacing."""

    step_delay_seconds: float = Field(
        default=0.12, ge=0.0, description="Pause between simulated hours"
    )


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

    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


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


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    enrichment_config = EnrichmentConfig(
        api_key=os.getenv("LLM_API_KEY", ""),
        base_url=os.getenv("LLM_BASE_URL", DEFAULT_BASE_URL),
        model=os.getenv("LLM_MODEL", DEFAULT_MODEL),
        enabled=_parse_bool(os.getenv("LLM_ENABLED"), False),
    )

    controller_config = ControllerConfig(
        debounce_seconds=float(os.getenv("LLM_DEBOUNCE_SECONDS", "0.6")),
        request_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "30.0")),
    )

    simulation_config = SimulationConfig(
        step_delay_seconds=float(os.getenv("SIMULATION_STEP_DELAY_SECONDS", "0.12")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        enrichment=enrichment_config,
        controller=controller_config,
        simulation=simulation_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
