"""Unit tests for configuration module.

Tests for app/config.py - Settings defaults, validation and helpers.

Run with:
    pytest tests/unit/test_config.py -v
    pytest tests/unit/test_config.py -v -m fast
"""

import pytest

from app.config import DEFAULT_JWT_SECRET, Environment, Settings, get_settings


@pytest.mark.fast
class TestEnvironment:
    """Tests for Environment enum."""

    def test_environment_values(self):
        """Test Environment enum has expected values."""
        assert Environment.DEVELOPMENT.value == "development"
        assert Environment.STAGING.value == "staging"
        assert Environment.PRODUCTION.value == "production"


@pytest.mark.fast
class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self, monkeypatch):
        """Test settings defaults for models, sessions and polling."""
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        settings = Settings()
        assert settings.JWT_EXPIRE_DAYS == 7
        assert settings.JWT_SECRET_KEY == DEFAULT_JWT_SECRET
        assert settings.VIDEO_POLL_INTERVAL_SECONDS == 10
        assert settings.VIDEO_POLL_BACKOFF_FACTOR == 1.5
        assert settings.VIDEO_POLL_MAX_INTERVAL_SECONDS == 60
        assert settings.VIDEO_POLL_MAX_ATTEMPTS == 90
        assert settings.VIDEO_DOWNLOAD_HOST == "generativelanguage.googleapis.com"

    def test_api_key_alias(self, monkeypatch):
        """Test the Google key can also come from API_KEY."""
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.setenv("API_KEY", "from-alias")
        assert Settings().get_api_key() == "from-alias"

    def test_missing_api_key(self, monkeypatch):
        """Test get_api_key raises when no key is configured."""
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(ValueError, match="GOOGLE_API_KEY not configured"):
            Settings(GOOGLE_API_KEY=None).get_api_key()

    def test_database_url_validation(self):
        """Test DATABASE_URL must be SQLite or PostgreSQL."""
        with pytest.raises(ValueError, match="DATABASE_URL must start with"):
            Settings(DATABASE_URL="mysql://localhost/db")

    def test_production_requires_secret(self, monkeypatch):
        """Test production refuses the development signing secret."""
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
        with pytest.raises(ValueError, match="JWT_SECRET_KEY must be set in production"):
            Settings(ENVIRONMENT=Environment.PRODUCTION)

        settings = Settings(ENVIRONMENT=Environment.PRODUCTION, JWT_SECRET_KEY="real-secret-value")
        assert settings.is_production

    @pytest.mark.parametrize("environment,secure", [
        (Environment.DEVELOPMENT, False),
        (Environment.STAGING, True),
        (Environment.PRODUCTION, True),
    ])
    def test_cookie_secure(self, environment, secure):
        """Test session cookies are Secure outside development."""
        settings = Settings(ENVIRONMENT=environment, JWT_SECRET_KEY="real-secret-value")
        assert settings.cookie_secure is secure

    def test_cors_origins(self):
        """Test CORS origins are split and trimmed."""
        settings = Settings(CORS_ORIGINS="https://a.example.com, https://b.example.com,")
        assert settings.cors_origins == ["https://a.example.com", "https://b.example.com"]

    def test_is_sqlite(self):
        assert Settings(DATABASE_URL="sqlite+aiosqlite:///./x.db").is_sqlite
        assert not Settings(DATABASE_URL="postgresql+asyncpg://u:p@h/db").is_sqlite

    def test_model_config(self):
        settings = Settings(TEXT_MODEL="t", IMAGE_MODEL="i", VIDEO_MODEL="v")
        assert settings.get_model_config() == {"text": "t", "image": "i", "video": "v"}

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
