"""Pydantic Settings model for application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from github_asana_relay.utils.constants import DEFAULT_ASANA_API_URL


class Settings(BaseSettings):
    """Environment variable settings for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Generic application-wide settings
    DEBUG: bool = False
    STATE_DB_PATH: Path = Path(".relay/state.db")

    # GitHub API settings
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: str | None = None

    # Asana API settings
    ASANA_API_URL: str = DEFAULT_ASANA_API_URL
    ASANA_PAT: str | None = None
    ASANA_PROJECT_ID: str | None = None
    ASANA_WORKSPACE_ID: str | None = None

    # Optional Asana custom field ids
    REPOSITORY_FIELD_ID: str | None = None
    CREATOR_FIELD_ID: str | None = None
    GITHUB_URL_FIELD_ID: str | None = None
    ISSUE_TYPE_FIELD_ID: str | None = None
    LABELS_FIELD_ID: str | None = None


def load_settings() -> Settings:
    """Read settings from the environment and the .env file."""
    return Settings()
