from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


SYNC_KINDS = ("issues", "pulls")


class ConfigurationError(Exception):
    """Raised when a sync kind is missing required configuration."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # GitHub (source)
    github_key: str = ""
    github_repo_owner: str = ""
    github_repo_name: str = ""
    github_api_url: str = "https://api.github.com"

    # Notion (destination)
    notion_key: str = ""
    issue_database_id: Optional[str] = None
    pull_database_id: Optional[str] = None
    notion_api_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"

    # Sync
    sync_interval_minutes: float = 5
    sync_issues_enabled: bool = True
    sync_pulls_enabled: bool = True
    api_timeout_seconds: float = 30.0
    shutdown_timeout_seconds: float = 300.0

    # Authentication for the HTTP API
    auth_enabled: bool = False
    auth_username: str = "admin"
    auth_password: str = "changeme"

    # Logging
    log_level: str = "INFO"

    # Application Settings
    app_title: str = "GitHub Notion Sync"
    app_description: str = "Mirror GitHub issues and pull requests into Notion databases"

    def database_id_for(self, kind: str) -> Optional[str]:
        """Return the Notion database id configured for a sync kind."""
        if kind == "issues":
            return self.issue_database_id
        if kind == "pulls":
            return self.pull_database_id
        raise ConfigurationError(f"Unknown sync kind: {kind}")

    def is_enabled(self, kind: str) -> bool:
        if kind == "issues":
            return self.sync_issues_enabled
        if kind == "pulls":
            return self.sync_pulls_enabled
        raise ConfigurationError(f"Unknown sync kind: {kind}")


settings = Settings()
