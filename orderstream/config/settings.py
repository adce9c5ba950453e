"""
Order Stream Cache
Centralized Configuration Management

Settings are loaded once by the entry point (``get_settings()``) and passed to
each component's constructor. All models are frozen: components treat their
configuration as immutable input.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", frozen=True)

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="wb", description="Database name")
    user: str = Field(default="postgres", description="Database user")
    password: SecretStr = Field(default="admin", description="Database password")
    url: Optional[str] = Field(default=None, description="Full SQLAlchemy URL (overrides host/port)")
    pool_size: int = Field(default=5, ge=1, description="Connection pool size")
    max_overflow: int = Field(default=0, ge=0, description="Max overflow connections")
    pool_timeout: int = Field(default=30, description="Seconds to wait for a free connection")
    pool_recycle: int = Field(default=300, description="Max connection lifetime in seconds")
    echo: bool = Field(default=False, description="Echo SQL queries")
    create_schema: bool = Field(default=True, description="Create tables at startup")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class StreamSettings(BaseSettings):
    """Kafka Streaming Configuration"""

    model_config = SettingsConfigDict(env_prefix="KAFKA_", frozen=True)

    bootstrap_servers: str = Field(default="localhost:9092", description="Kafka bootstrap servers")
    topic: str = Field(default="orders", description="Durable subject carrying order documents")
    durable_name: str = Field(default="orderstream-durable", description="Consumer group of the durable subscription")
    client_id: str = Field(default="orderstream", description="Client identifier")
    ack_timeout_seconds: int = Field(default=30, ge=1, description="Redelivery timeout for unacknowledged messages")
    redelivery_delay_ms: int = Field(default=1000, ge=0, description="Pause before a failed message is redelivered")
    auto_offset_reset: str = Field(default="earliest", description="Start position for a new durable subscription")
    session_timeout_ms: int = Field(default=30000, description="Session timeout")
    heartbeat_interval_ms: int = Field(default=10000, description="Heartbeat interval")

    @property
    def ack_timeout_ms(self) -> int:
        return self.ack_timeout_seconds * 1000


class CacheSettings(BaseSettings):
    """In-memory Order Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="CACHE_", frozen=True)

    capacity: int = Field(default=10, ge=1, description="Maximum number of cached orders")
    app_key: str = Field(default="WB-1", description="Partition key of the persisted cache index")
    cold_start: bool = Field(default=False, description="Clear the persisted index instead of recovering")
    prune_unrecoverable: bool = Field(
        default=True,
        description="Remove index rows whose orders cannot be read during recovery",
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", frozen=True, populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or console")

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format value"""
        if v.lower() not in ("json", "console"):
            raise ValueError("Log format must be 'json' or 'console'")
        return v.lower()


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="orderstream", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    version: str = Field(default="1.0.0", description="Application version")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    publish_sample_on_startup: bool = Field(
        default=False,
        alias="PUBLISH_SAMPLE_ON_STARTUP",
        description="Publish the demonstration order once the consumer is running",
    )

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Load application settings from the environment.

    Called by entry points only; components receive the resulting value
    through their constructors.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
