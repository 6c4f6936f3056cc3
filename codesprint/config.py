"""App configuration — environment variable loading with typed defaults.

Loads settings from .env file (via python-dotenv) and os.environ.
Real environment variables take precedence over .env file values.

Tier names (e.g. SPRINT_TIER=fast) are validated against TIER_MAP at load
time; the concrete ModelConfig is resolved later together with AI_BACKEND.

Usage:
    from codesprint.config import get_settings
    settings = get_settings()
    print(settings.sprint_tier)  # "fast"
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from codesprint.models import TIER_MAP

# Only load .env from the project root; never traverse parent directories.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DOTENV_PATH = PROJECT_ROOT / ".env"

AI_BACKENDS: tuple[str, ...] = ("gemini", "anthropic", "mock")


@dataclass(frozen=True)
class Settings:
    """Typed configuration for the sprint engine.

    All fields have sensible defaults for local development.
    """

    # App
    app_env: str
    app_port: int
    log_level: str
    cors_origins: list[str]

    # AI
    ai_backend: str
    sprint_tier: str
    track_tier: str
    google_api_key: str
    anthropic_api_key: str
    generation_timeout_seconds: float

    # Content
    sprint_card_count: int
    track_lesson_count: int
    default_sprint_topic: str

    # Storage
    database_url: str


def _choice(env_var: str, value: str, valid: tuple[str, ...] | list[str]) -> str:
    """Returns ``value`` if it is one of ``valid``, else raises ValueError."""
    if value in valid:
        return value
    raise ValueError(
        f"Invalid value for {env_var}: {value!r}. "
        f"Valid options: {', '.join(sorted(valid))}"
    )


def _positive(env_var: str, value: str, cast: type = int) -> int | float:
    """Parses a strictly positive number, naming the variable on failure."""
    try:
        number = cast(value)
    except ValueError:
        raise ValueError(f"Invalid value for {env_var}: {value!r} is not a number") from None
    if number <= 0:
        raise ValueError(f"Invalid value for {env_var}: {value!r} must be > 0")
    return number


def _split_csv(value: str) -> list[str]:
    """Splits a comma-separated string into a list of stripped, non-empty values."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_settings() -> Settings:
    """Loads configuration from .env file and environment variables.

    Raises:
        ValueError: A variable holds an unknown tier or backend, or a
            non-positive timeout or count.
    """
    load_dotenv(_DOTENV_PATH)
    tiers = list(TIER_MAP)

    return Settings(
        # App
        app_env=os.environ.get("APP_ENV", "development"),
        app_port=int(os.environ.get("APP_PORT", "8000")),
        log_level=os.environ.get("LOG_LEVEL", "info"),
        cors_origins=_split_csv(
            os.environ.get("CORS_ORIGINS", "http://localhost:8081,http://localhost:19006")
        ),
        # AI
        ai_backend=_choice("AI_BACKEND", os.environ.get("AI_BACKEND", "gemini"), AI_BACKENDS),
        sprint_tier=_choice("SPRINT_TIER", os.environ.get("SPRINT_TIER", "fast"), tiers),
        track_tier=_choice("TRACK_TIER", os.environ.get("TRACK_TIER", "standard"), tiers),
        google_api_key=os.environ.get("GOOGLE_API_KEY", ""),
        anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        generation_timeout_seconds=_positive(
            "GENERATION_TIMEOUT_SECONDS",
            os.environ.get("GENERATION_TIMEOUT_SECONDS", "12"),
            float,
        ),
        # Content
        sprint_card_count=_positive(
            "SPRINT_CARD_COUNT", os.environ.get("SPRINT_CARD_COUNT", "5")
        ),
        track_lesson_count=_positive(
            "TRACK_LESSON_COUNT", os.environ.get("TRACK_LESSON_COUNT", "5")
        ),
        default_sprint_topic=os.environ.get("DEFAULT_SPRINT_TOPIC", "General"),
        # Storage
        database_url=os.environ.get("DATABASE_URL", ""),
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Returns the singleton Settings instance. Loads .env on first call."""
    global _settings
    if _settings is None:
        _settings = _load_settings()
    return _settings
