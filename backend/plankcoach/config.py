"""
PlankCoach Configuration

Environment variables and application settings.
Coaching constants live in domain.thresholds; only deployment knobs are here.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional

from . import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "PlankCoach"
    VERSION: str = __version__
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Telemetry (outbound mirror of analysis samples, disabled when unset)
    TELEMETRY_URL: Optional[str] = None
    TELEMETRY_MAX_ATTEMPTS: int = 5
    TELEMETRY_BASE_DELAY: float = 1.0
    TELEMETRY_MAX_DELAY: float = 10.0

    # Coaching
    ANALYSIS_INTERVAL_MS: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
