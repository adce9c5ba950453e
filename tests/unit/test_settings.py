"""
Unit Tests - Configuration
"""
import pytest
from pydantic import ValidationError

from orderstream.config import CacheSettings, DatabaseSettings, Settings, StreamSettings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("CACHE_CAPACITY", "CACHE_APP_KEY", "KAFKA_TOPIC", "POSTGRES_URL", "APP_ENV", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Tests for application settings"""

    def test_defaults(self, clean_env):
        settings = Settings()

        assert settings.cache.capacity == 10
        assert settings.cache.app_key == "WB-1"
        assert settings.cache.cold_start is False
        assert settings.stream.topic == "orders"
        assert settings.stream.ack_timeout_ms == 30000
        assert settings.database.pool_size == 5
        assert settings.database.pool_recycle == 300

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("CACHE_CAPACITY", "3")
        clean_env.setenv("CACHE_APP_KEY", "WB-2")
        clean_env.setenv("KAFKA_TOPIC", "orders-v2")

        settings = Settings()

        assert settings.cache.capacity == 3
        assert settings.cache.app_key == "WB-2"
        assert settings.stream.topic == "orders-v2"

    def test_settings_are_frozen(self):
        settings = CacheSettings()

        with pytest.raises(ValidationError):
            settings.capacity = 99

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValidationError):
            CacheSettings(capacity=0)

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(app_env="moon")

    def test_invalid_log_format(self, clean_env):
        clean_env.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValidationError):
            Settings()

    def test_database_url(self, clean_env):
        settings = DatabaseSettings(host="db", port=6432, db="orders", user="svc", password="pw")

        assert settings.async_url == "postgresql+asyncpg://svc:pw@db:6432/orders"
        assert DatabaseSettings(url="sqlite+aiosqlite:///x.db").async_url == "sqlite+aiosqlite:///x.db"

    def test_stream_ack_timeout(self):
        assert StreamSettings(ack_timeout_seconds=5).ack_timeout_ms == 5000
