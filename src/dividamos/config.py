"""Configuration management for Dividamos."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # GitHub storage (both required to enable it)
    github_token: str | None = None
    github_repo: str | None = None  # format: "owner/repo"
    github_branch: str | None = None  # None = repository default branch

    # Local storage, also the path of the file inside the GitHub repo
    data_file: Path = Path("data") / "expenses.json"

    # Group used when the CLI is not given --group
    default_group: str = "default"

    # Reload-and-retry attempts after an optimistic concurrency conflict
    conflict_retries: int = 2


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables.\n"
            f"Error: {e}"
        ) from e
