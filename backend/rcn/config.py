"""
Application configuration loaded from environment variables.

Supports two storage backends via STORAGE_BACKEND:
- sql: PostgreSQL (local or cloud, selected by DATABASE_MODE)
- demo: a single JSON document on local disk (no database required)
"""

import logging
import os
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from backend directory
backend_dir = Path(__file__).parent.parent
load_dotenv(backend_dir / ".env")

logger = logging.getLogger("rcn.config")


class Config:
    """Application configuration."""

    # Flask settings
    DEBUG = os.getenv("FLASK_DEBUG", "0") == "1"
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Storage backend: "sql" or "demo"
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "demo")

    # Environment mode: "local" or "cloud" (PostgreSQL host selection)
    DATABASE_MODE = os.getenv("DATABASE_MODE", "local")
    DATABASE_URL = os.getenv("DATABASE_URL", "")

    # PostgreSQL - Local
    POSTGRES_HOST_LOCAL = os.getenv("POSTGRES_HOST_LOCAL", "localhost")
    POSTGRES_PORT_LOCAL = os.getenv("POSTGRES_PORT_LOCAL", "5432")
    POSTGRES_DB_LOCAL = os.getenv("POSTGRES_DB_LOCAL", "rcn")
    POSTGRES_USER_LOCAL = os.getenv("POSTGRES_USER_LOCAL", "postgres")
    POSTGRES_PASSWORD_LOCAL = os.getenv("POSTGRES_PASSWORD_LOCAL", "")

    # PostgreSQL - Cloud
    POSTGRES_HOST_CLOUD = os.getenv("POSTGRES_HOST_CLOUD", "")
    POSTGRES_PORT_CLOUD = os.getenv("POSTGRES_PORT_CLOUD", "5432")
    POSTGRES_DB_CLOUD = os.getenv("POSTGRES_DB_CLOUD", "rcn")
    POSTGRES_USER_CLOUD = os.getenv("POSTGRES_USER_CLOUD", "postgres")
    POSTGRES_PASSWORD_CLOUD = os.getenv("POSTGRES_PASSWORD_CLOUD", "")

    # Local demo mode
    DEMO_STORE_PATH = os.getenv("DEMO_STORE_PATH", "./rcn-demo-state.json")
    DEMO_STORAGE_KEY = os.getenv("DEMO_STORAGE_KEY", "rcn_demo_state_v1")
    DEMO_SEED_ON_FIRST_LOAD = os.getenv("DEMO_SEED_ON_FIRST_LOAD", "true").lower() == "true"

    # Pricing
    PRICE_PER_REFERRAL = Decimal(os.getenv("PRICE_PER_REFERRAL", "10.00"))
    PROCESSING_FEE_PERCENT = Decimal(os.getenv("PROCESSING_FEE_PERCENT", "3.0"))
    CURRENCY = os.getenv("CURRENCY", "USD")

    # Payments
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")

    # Auth
    JWT_SECRET = os.getenv("JWT_SECRET", "rcn-secret-key-change-in-production")
    JWT_ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    @classmethod
    def get_database_url(cls) -> str:
        """Build PostgreSQL connection URL based on DATABASE_MODE."""
        if cls.DATABASE_URL:
            return cls.DATABASE_URL

        if cls.DATABASE_MODE == "cloud":
            host = cls.POSTGRES_HOST_CLOUD
            port = cls.POSTGRES_PORT_CLOUD
            db = cls.POSTGRES_DB_CLOUD
            user = cls.POSTGRES_USER_CLOUD
            password = cls.POSTGRES_PASSWORD_CLOUD
            mode_label = "CLOUD"
        else:
            host = cls.POSTGRES_HOST_LOCAL
            port = cls.POSTGRES_PORT_LOCAL
            db = cls.POSTGRES_DB_LOCAL
            user = cls.POSTGRES_USER_LOCAL
            password = cls.POSTGRES_PASSWORD_LOCAL
            mode_label = "LOCAL"

        if password:
            url = f"postgresql://{user}:{password}@{host}:{port}/{db}"
        else:
            url = f"postgresql://{user}@{host}:{port}/{db}"

        logger.info("PostgreSQL: %s (%s)", mode_label, host)
        return url

    def as_dict(self) -> dict:
        """Snapshot of all upper-case settings (used to seed Flask config)."""
        return {
            key: getattr(self, key)
            for key in dir(self)
            if key.isupper()
        }


# Singleton instance
config = Config()
