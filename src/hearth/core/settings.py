"""Application settings and configuration.

This module defines all configuration options for the Hearth node.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Node settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Hearth", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./hearth.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Message graph traversal
    max_thread_nodes: int = Field(default=1000, alias="MAX_THREAD_NODES")
    channel_page_size: int = Field(default=100, alias="CHANNEL_PAGE_SIZE")

    # Meta-channel synchronization
    sync_queue_size: int = Field(default=256, alias="SYNC_QUEUE_SIZE")
    sync_pull_interval_seconds: float = Field(default=2.0, alias="SYNC_PULL_INTERVAL_SECONDS")
    authorization_policy: Literal["open", "role-hierarchy"] = Field(
        default="open",
        alias="AUTHORIZATION_POLICY",
    )

    # Invites
    invite_ttl_hours: int = Field(default=72, alias="INVITE_TTL_HOURS")
    inviter_private_key: str | None = Field(default=None, alias="INVITER_PRIVATE_KEY")

    # CORS configuration for a local UI process
    cors_origins: list[str] = Field(
        default=["http://localhost", "http://127.0.0.1"],
        alias="CORS_ORIGINS",
    )
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
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
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise the node's)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
