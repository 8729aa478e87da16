"""Application configuration via pydantic-settings.

All secrets and environment-specific values must be stored in `.env` and read here.
Both processes (API server and notification consumer) share this settings class.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly-typed application settings loaded from `.env`."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = Field(default="chat-api", alias="APP_NAME")
    api_cors_origins: str = Field(default="*", alias="API_CORS_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Required by the API only; checked by `core.security.jwt_secret`.
    jwt_secret_key: str | None = Field(default=None, alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_access_token_expire_minutes: int = Field(
        default=60, alias="JWT_ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str = Field(default="chatdb", alias="POSTGRES_DB")
    postgres_user: str = Field(default="chatuser", alias="POSTGRES_USER")
    postgres_password: str = Field(default="chatpass", alias="POSTGRES_PASSWORD")
    database_pool_size: int = Field(default=5, alias="DATABASE_POOL_SIZE")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    cache_ttl_seconds: int = Field(default=300, alias="CACHE_TTL_SECONDS")

    rabbitmq_host: str = Field(default="localhost", alias="RABBITMQ_HOST")
    rabbitmq_port: int = Field(default=5672, alias="RABBITMQ_PORT")
    rabbitmq_user: str = Field(default="chatuser", alias="RABBITMQ_USER")
    rabbitmq_password: str = Field(default="chatpass", alias="RABBITMQ_PASSWORD")
    rabbitmq_vhost: str = Field(default="", alias="RABBITMQ_VHOST")
    rabbitmq_exchange: str = Field(default="chat_events", alias="RABBITMQ_EXCHANGE")
    rabbitmq_queue: str = Field(default="notification_queue", alias="RABBITMQ_QUEUE")
    rabbitmq_connect_timeout_seconds: float = Field(
        default=60.0, alias="RABBITMQ_CONNECT_TIMEOUT_SECONDS"
    )
    # When true the API refuses to start without a broker instead of running
    # with a publisher that drops events.
    rabbitmq_required: bool = Field(default=False, alias="RABBITMQ_REQUIRED")

    consumer_receive_timeout_seconds: float = Field(
        default=5.0, alias="CONSUMER_RECEIVE_TIMEOUT_SECONDS"
    )
    consumer_ack_policy: Literal["auto", "manual"] = Field(
        default="auto", alias="CONSUMER_ACK_POLICY"
    )

    smtp_host: str = Field(default="", alias="SMTP_HOST")
    smtp_port: int = Field(default=0, alias="SMTP_PORT")
    smtp_user: str = Field(default="", alias="SMTP_USER")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    smtp_from: str = Field(default="", alias="SMTP_FROM")
    smtp_timeout_seconds: float = Field(default=30.0, alias="SMTP_TIMEOUT_SECONDS")
    test_email_recipient: str = Field(default="", alias="TEST_EMAIL_RECIPIENT")
    simulated_email_delay_seconds: float = Field(
        default=1.5, alias="SIMULATED_EMAIL_DELAY_SECONDS"
    )

    translation_api_url: str = Field(default="http://localhost:5001", alias="TRANSLATION_API_URL")
    translation_timeout_seconds: float = Field(default=5.0, alias="TRANSLATION_TIMEOUT_SECONDS")

    @property
    def database_dsn(self) -> str:
        """Return SQLAlchemy async DSN for PostgreSQL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def redis_dsn(self) -> str:
        """Return Redis DSN."""
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def rabbitmq_dsn(self) -> str:
        """Return RabbitMQ DSN."""
        return (
            f"amqp://{self.rabbitmq_user}:{self.rabbitmq_password}"
            f"@{self.rabbitmq_host}:{self.rabbitmq_port}/{self.rabbitmq_vhost}"
        )

    @property
    def smtp_configured(self) -> bool:
        """True when every SMTP credential needed for real delivery is present."""
        return bool(
            self.smtp_host and self.smtp_user and self.smtp_password and self.smtp_port > 0
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
