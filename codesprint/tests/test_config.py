"""Tests for codesprint.config — Typed configuration from environment."""

import pytest

import codesprint.config as config_module
from codesprint.config import Settings, get_settings

_ENV_VARS = [
    "APP_ENV", "APP_PORT", "LOG_LEVEL", "CORS_ORIGINS",
    "AI_BACKEND", "SPRINT_TIER", "TRACK_TIER",
    "GOOGLE_API_KEY", "ANTHROPIC_API_KEY", "GENERATION_TIMEOUT_SECONDS",
    "SPRINT_CARD_COUNT", "TRACK_LESSON_COUNT", "DEFAULT_SPRINT_TOPIC",
    "DATABASE_URL",
]


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Resets the cached singleton and skips the project .env file."""
    monkeypatch.setattr(config_module, "_settings", None)
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture()
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Removes all engine env vars so defaults are tested cleanly."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.mark.usefixtures("_clean_env")
class TestDefaults:
    def test_app_defaults(self) -> None:
        s = get_settings()
        assert s.app_env == "development"
        assert s.app_port == 8000
        assert s.log_level == "info"
        assert s.cors_origins == ["http://localhost:8081", "http://localhost:19006"]

    def test_ai_defaults(self) -> None:
        s = get_settings()
        assert s.ai_backend == "gemini"
        assert s.sprint_tier == "fast"
        assert s.track_tier == "standard"
        assert s.generation_timeout_seconds == 12.0
        assert s.google_api_key == ""
        assert s.anthropic_api_key == ""

    def test_content_defaults(self) -> None:
        s = get_settings()
        assert s.sprint_card_count == 5
        assert s.track_lesson_count == 5
        assert s.default_sprint_topic == "General"
        assert s.database_url == ""


@pytest.mark.usefixtures("_clean_env")
class TestEnvOverrides:
    def test_backend_and_tiers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AI_BACKEND", "mock")
        monkeypatch.setenv("SPRINT_TIER", "standard")
        monkeypatch.setenv("TRACK_TIER", "complex")
        s = get_settings()
        assert (s.ai_backend, s.sprint_tier, s.track_tier) == ("mock", "standard", "complex")

    def test_numbers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GENERATION_TIMEOUT_SECONDS", "7.5")
        monkeypatch.setenv("SPRINT_CARD_COUNT", "8")
        s = get_settings()
        assert s.generation_timeout_seconds == 7.5
        assert s.sprint_card_count == 8

    def test_cors_csv_strips_empty_items(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ORIGINS", " http://a , ,http://b ")
        assert get_settings().cors_origins == ["http://a", "http://b"]

    def test_database_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        assert get_settings().database_url == "sqlite+aiosqlite:///:memory:"


@pytest.mark.usefixtures("_clean_env")
class TestInvalidValues:
    def test_unknown_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AI_BACKEND", "openai")
        with pytest.raises(ValueError, match="AI_BACKEND"):
            get_settings()

    def test_unknown_tier_lists_options(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPRINT_TIER", "turbo")
        with pytest.raises(ValueError, match="fast"):
            get_settings()

    @pytest.mark.parametrize("value", ["0", "-3", "soon"])
    def test_bad_timeout(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("GENERATION_TIMEOUT_SECONDS", value)
        with pytest.raises(ValueError, match="GENERATION_TIMEOUT_SECONDS"):
            get_settings()

    def test_bad_count(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRACK_LESSON_COUNT", "0")
        with pytest.raises(ValueError, match="TRACK_LESSON_COUNT"):
            get_settings()


class TestSingleton:
    def test_same_instance(self) -> None:
        assert get_settings() is get_settings()

    def test_frozen(self) -> None:
        s = get_settings()
        assert isinstance(s, Settings)
        with pytest.raises(AttributeError):
            s.app_env = "production"  # type: ignore[misc]
