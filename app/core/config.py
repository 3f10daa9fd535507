"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Group Matcher"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"  # Bind to all interfaces for external access
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./group_matcher.db"

    # Matching
    max_period_days: int = 100  # Upper bound on days scanned per event

    # Background jobs
    deadline_check_interval_minutes: int = 5
    allocation_interval_minutes: int = 30  # 0 disables the scheduled global pass

    # Notifications
    notification_webhook_url: str = ""  # Empty means log-only notifications
    notification_timeout_seconds: float = 5.0


settings = Settings()
