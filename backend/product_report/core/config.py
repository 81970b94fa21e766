"""
Centralized application configuration

All values come from the environment (or a local .env file). Every field has
a default so the API can be imported and tested without external services.
"""
import json
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "The Product Report API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Analytics, search and scheduled jobs for The Product Report"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://theproductreport.org" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000"

    # Auth
    AUTH_SECRET: str = ""
    CRON_SECRET: str = ""
    PAYLOAD_API_SECRET: str = ""

    # Third-party analytics
    REVENUECAT_API_KEY: str = ""
    MIXPANEL_API_SECRET: str = ""
    STATSIG_CONSOLE_API_KEY: str = ""

    # Embeddings
    GEMINI_API_KEY: str = ""

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance (call get_settings.cache_clear() in tests)"""
    return Settings()
