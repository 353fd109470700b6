"""
Application configuration using Pydantic Settings.
All timestamps use UTC. Server time is authoritative.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HOMEPANEL_",
        case_sensitive=False,
    )

    # Application
    app_name: str = "HomePanel"
    app_env: str = "development"
    debug: bool = False
    secret_key: str = "change-me-in-production"

    # Auth
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Database
    database_url: str = "sqlite+aiosqlite:///./homepanel.db"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Audit log read cap (most recent N)
    audit_log_limit: int = 50

    # WebSocket
    ws_heartbeat_interval: int = 30  # seconds

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
