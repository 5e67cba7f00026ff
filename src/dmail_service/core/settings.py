"""Application settings and configuration.

This module defines all configuration options for the dmail service.
Settings are loaded from environment variables with sensible defaults.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Dmail Service", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    dmail_key: str | None = Field(default=None, alias="DMAIL_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./dmail.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Spam autoban: `threshold` or more spammed recipients inside the window bans the sender
    autoban_threshold: int = Field(default=10, alias="DMAIL_AUTOBAN_THRESHOLD")
    autoban_window_hours: int = Field(default=24, alias="DMAIL_AUTOBAN_WINDOW_HOURS")
    autoban_duration_days: int = Field(default=3, alias="DMAIL_AUTOBAN_DURATION_DAYS")
    autoban_reason: str = Field(default="Spambot.", alias="DMAIL_AUTOBAN_REASON")

    system_user_name: str = Field(default="System", alias="SYSTEM_USER_NAME")

    # Out-of-band notices for new mail
    notification_webhook_url: str | None = Field(default=None, alias="NOTIFICATION_WEBHOOK_URL")
    notification_timeout_seconds: float = Field(
        default=5.0,
        alias="NOTIFICATION_TIMEOUT_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def capability_secret(self) -> str:
        """Return the secret used to derive dmail capability keys."""
        return self.dmail_key or self.secret_key

    @property
    def autoban_window(self) -> timedelta:
        """Return the trailing window inspected by the spam autoban."""
        return timedelta(hours=self.autoban_window_hours)


settings = Settings()  # type: ignore[call-arg]
