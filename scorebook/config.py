"""
Service configuration
"""
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Service settings from environment variables"""

    # Database
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "scorebook.db")
    DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")
    SQL_ECHO: bool = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

    # Comma-separated extra origins for the scoring/scoreboard frontends
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Only applied when a match is created without an overs limit
    DEFAULT_OVERS_LIMIT: Optional[int] = int(os.getenv("DEFAULT_OVERS_LIMIT", "20")) or None

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
