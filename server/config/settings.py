"""Application configuration settings."""
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import model_validator
from typing import List

# Get the server directory path
SERVER_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # Supabase Auth issues the access tokens; we only verify them
    SUPABASE_JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # Where the UI should send viewers without a valid session
    LOGIN_URL: str = "/auth"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # CORS: explicit list of allowed origins
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    # Live sync: change events arriving within this window collapse into one re-fetch
    LIVE_SYNC_DEBOUNCE_SECONDS: float = 0.25

    # Seconds to wait for the server to acknowledge a Realtime channel join
    REALTIME_JOIN_TIMEOUT_SECONDS: float = 10.0

    # Messages
    MESSAGE_MAX_LENGTH: int = 5000

    @model_validator(mode="after")
    def _validate_live_sync(self) -> "Settings":
        if self.LIVE_SYNC_DEBOUNCE_SECONDS < 0:
            raise ValueError("LIVE_SYNC_DEBOUNCE_SECONDS must not be negative")
        if self.REALTIME_JOIN_TIMEOUT_SECONDS <= 0:
            raise ValueError("REALTIME_JOIN_TIMEOUT_SECONDS must be positive")
        return self

    class Config:
        env_file = str(SERVER_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
