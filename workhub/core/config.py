"""
App Configuration.

This module defines the global application settings using Pydantic Settings.
It loads configuration variables from environment variables and/or a .env file,
ensuring typed and validated settings for the application.

Attributes:
    settings: The global instance of the Settings class, ready to be imported and used.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Settings.

    This class defines the configuration for the application, validating
    environment variables against the specified types.

    Attributes:
        PROJECT_NAME: The name of the project (default: "Workhub Sync").
        DATABASE_URL: The connection string for the database.
        LOG_LEVEL: Root log level passed to setup_logging.
        TOKEN_ENCRYPTION_KEY: Secret used to derive the Fernet key for stored tokens.
        GITHUB_WEBHOOK_SECRET: Fallback webhook secret for repositories without their own.
        GITHUB_API_URL: Base URL of the GitHub REST API.
        GITHUB_API_VERSION: Value sent as X-GitHub-Api-Version.
        GITHUB_REQUEST_TIMEOUT: Timeout (seconds) for outbound GitHub calls.
        COMMIT_STATS_BATCH_SIZE: Concurrency window for commit stats backfill.
    """

    # Core
    PROJECT_NAME: str = "Workhub Sync"
    DATABASE_URL: str
    LOG_LEVEL: str = "INFO"

    # Secrets
    TOKEN_ENCRYPTION_KEY: str = ""
    GITHUB_WEBHOOK_SECRET: Optional[str] = None

    # GitHub REST API
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_API_VERSION: str = "2022-11-28"
    GITHUB_REQUEST_TIMEOUT: float = 10.0
    COMMIT_STATS_BATCH_SIZE: int = 5

    model_config = SettingsConfigDict(
        env_file=".env", env_ignore_empty=True, extra="ignore"
    )


settings = Settings()
