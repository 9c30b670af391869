"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Inbox Triage"
    environment: str = "development"
    log_level: str = "debug"
    debug: bool = True

    # Beeper Desktop API
    beeper_access_token: str = ""
    beeper_base_url: str = "http://localhost:23373"
    connector_timeout_seconds: float = 15.0

    # Google AI
    google_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    suggestion_temperature: float = 0.7

    # Inbox
    conversation_limit: int = 30
    include_muted: bool = False
    message_window: int = 30
    suggestion_window: int = 30
    enrichment_concurrency: int = 10
    refresh_interval_seconds: int = 30

    # CORS
    frontend_url: str = "http://localhost:3000"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
