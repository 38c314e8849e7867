"""
Environment configuration for the recipe backend
"""
import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()


class Settings:
    def __init__(self):
        self.supabase_url: Optional[str] = os.getenv("SUPABASE_URL")
        self.supabase_service_key: Optional[str] = os.getenv("SUPABASE_SERVICE_KEY")
        self.supabase_jwt_secret: Optional[str] = os.getenv("SUPABASE_JWT_SECRET")
        self.supabase_timeout: float = float(os.getenv("SUPABASE_TIMEOUT", "10"))

        self.stripe_secret_key: Optional[str] = os.getenv("STRIPE_SECRET_KEY")
        self.stripe_webhook_secret: Optional[str] = os.getenv("STRIPE_WEBHOOK_SECRET")

        self.site_url: str = os.getenv("SITE_URL", "http://localhost:3000").rstrip("/")
        self.cors_origins: List[str] = [
            origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
        ]

        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_file: Optional[str] = os.getenv("LOG_FILE")


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process"""
    return Settings()
