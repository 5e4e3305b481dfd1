"""
Application configuration loaded from environment variables.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache

APP_VERSION = "1.0.0"


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8000/api/auth/callback"

    # Frontend URL for CORS and redirects
    frontend_url: str = "http://localhost:3000"

    # Gemini AI (empty key = heuristic routing, no summaries)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # Session
    session_secret: str = "dev-secret-change-in-production"
    session_expire_hours: int = 24

    # Mailbox limits
    inbox_fetch_count: int = 5
    delete_search_limit: int = 10
    delete_fallback_limit: int = 15

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    @property
    def google_scopes(self) -> list[str]:
        return [
            "openid",
            "email",
            "profile",
            "https://www.googleapis.com/auth/gmail.readonly",
            "https://www.googleapis.com/auth/gmail.send",
            "https://www.googleapis.com/auth/gmail.modify",
        ]

    @property
    def has_model_credential(self) -> bool:
        return bool(self.gemini_api_key.strip())

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
