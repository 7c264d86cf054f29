# brainstorm_bot/config.py
"""
Runtime settings for the brainstorm bot.

Values come from the process environment (optionally seeded from a ``.env``
file). ``load_settings()`` returns a fresh ``BotSettings`` object; the bot's
composition root receives it explicitly rather than reading a module global.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

load_dotenv()

DEFAULT_PROVIDER = os.getenv("BRAINSTORM_LLM_PROVIDER", "gemini")
DEFAULT_MODEL = os.getenv("BRAINSTORM_LLM_MODEL", "gemini-1.5-flash")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


class BotSettings(BaseModel):
    """Validated configuration for one bot process."""

    gemini_api_key: str = Field(default="", description="API key for the completion service")
    llm_provider: str = Field(default=DEFAULT_PROVIDER)
    llm_model: str = Field(default=DEFAULT_MODEL)

    log_level: str = Field(default="INFO")
    port: int = Field(default=3000)
    environment: str = Field(default="development")

    max_message_history: int = Field(default=100, description="Messages kept per session")
    intervention_cooldown_ms: int = Field(
        default=5000, description="Minimum gap after an intervention before the next one in a session"
    )

    topic_drift_threshold: float = Field(default=0.6)
    information_gap_threshold: float = Field(default=0.7)
    fact_check_threshold: float = Field(default=0.5)

    cache_ttl_seconds: float = Field(default=300.0)
    max_retries: int = Field(default=3)
    retry_base_delay_seconds: float = Field(default=1.0)
    retry_max_delay_seconds: float = Field(default=30.0)

    enable_learning: bool = Field(default=True)
    health_check_interval_seconds: float = Field(
        default=60.0, description="Seconds between background health checks; 0 disables them"
    )

    @classmethod
    def from_env(cls) -> BotSettings:
        """Build settings from environment variables."""
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            llm_provider=os.getenv("BRAINSTORM_LLM_PROVIDER", DEFAULT_PROVIDER),
            llm_model=os.getenv("BRAINSTORM_LLM_MODEL", DEFAULT_MODEL),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=_env_number("PORT", 3000, int),
            environment=os.getenv("APP_ENV", "development"),
            max_message_history=_env_number("MAX_MESSAGE_HISTORY", 100, int),
            intervention_cooldown_ms=_env_number("INTERVENTION_COOLDOWN_MS", 5000, int),
            topic_drift_threshold=_env_number("TOPIC_DRIFT_THRESHOLD", 0.6, float),
            information_gap_threshold=_env_number("INFORMATION_GAP_THRESHOLD", 0.7, float),
            fact_check_threshold=_env_number("FACT_CHECK_THRESHOLD", 0.5, float),
            cache_ttl_seconds=_env_number("CACHE_TTL_SECONDS", 300.0, float),
            max_retries=_env_number("MAX_RETRIES", 3, int),
            retry_base_delay_seconds=_env_number("RETRY_BASE_DELAY_SECONDS", 1.0, float),
            retry_max_delay_seconds=_env_number("RETRY_MAX_DELAY_SECONDS", 30.0, float),
            enable_learning=_env_bool("ENABLE_LEARNING", True),
            health_check_interval_seconds=_env_number("HEALTH_CHECK_INTERVAL_SECONDS", 60.0, float),
        )

    def validate_required(self) -> BotSettings:
        """
        Check required keys and value ranges.

        Raises:
            ConfigurationError: listing every problem found
        """
        problems: list[str] = []

        if not self.gemini_api_key.strip():
            problems.append("GEMINI_API_KEY is required")

        for name in ("topic_drift_threshold", "information_gap_threshold", "fact_check_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                problems.append(f"{name} must be between 0 and 1, got {value}")

        for name in ("max_message_history", "port", "cache_ttl_seconds"):
            if getattr(self, name) <= 0:
                problems.append(f"{name} must be positive")

        if self.max_retries < 0:
            problems.append("max_retries must not be negative")
        if self.intervention_cooldown_ms < 0:
            problems.append("intervention_cooldown_ms must not be negative")
        if self.retry_base_delay_seconds < 0 or self.retry_max_delay_seconds < 0:
            problems.append("retry delays must not be negative")
        if self.health_check_interval_seconds < 0:
            problems.append("health_check_interval_seconds must not be negative")

        if problems:
            raise ConfigurationError("; ".join(problems))
        return self


def load_settings(validate: bool = True) -> BotSettings:
    """Read settings from the environment, validating them unless told not to."""
    settings = BotSettings.from_env()
    if validate:
        settings.validate_required()
    return settings
