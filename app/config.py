"""
Intranet Portal
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'portal_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _csv(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # Document storage: "sql" (managed database) or "local" (JSON files)
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql")
    LOCAL_STORE_DIR = os.getenv("LOCAL_STORE_DIR", os.path.join(basedir, "instance", "local_store"))
    LOCAL_STORE_SEED = True

    # Redis (rate-limit storage, health check)
    REDIS_URL = os.getenv("REDIS_URL", "")

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Identity provider
    AUTH_ENABLED = os.getenv("AUTH_ENABLED", "true")
    AUTH_TOKEN_SECRET = os.getenv("AUTH_TOKEN_SECRET")
    AUTH_JWKS_URL = os.getenv("AUTH_JWKS_URL")
    AUTH_AUDIENCE = os.getenv("AUTH_AUDIENCE")
    AUTH_ISSUER = os.getenv("AUTH_ISSUER")
    ADMIN_EMAILS = _csv("ADMIN_EMAILS")
    GUARD_REDIRECT_PATH = os.getenv("GUARD_REDIRECT_PATH", "/dashboard")

    # RSS aggregation
    RSS_TIMEOUT_SECONDS = float(os.getenv("RSS_TIMEOUT_SECONDS", "10"))
    RSS_MAX_WORKERS = int(os.getenv("RSS_MAX_WORKERS", "8"))
    RSS_MAX_ITEMS = int(os.getenv("RSS_MAX_ITEMS", "20"))

    # Vulnerability scanner allowlist (/api/*)
    SCANNER_ALLOWED_IPS = _csv("SCANNER_ALLOWED_IPS", "52.17.9.21,52.17.98.131")
    SCANNER_USER_AGENT = os.getenv("SCANNER_USER_AGENT", "detectify")
    # Reverse proxies in front of the app; X-Forwarded-For is only trusted when > 0
    TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "0"))

    # Third-party embeds
    EMBED_URLS = {
        "powerBi": os.getenv("EMBED_POWER_BI_URL", ""),
        "tradingView": os.getenv("EMBED_TRADINGVIEW_URL", "https://s.tradingview.com/embed-widget/market-overview/"),
        "chatbot": os.getenv("EMBED_CHATBOT_URL", ""),
        "crm": os.getenv("EMBED_CRM_URL", ""),
        "calendar": os.getenv("EMBED_CALENDAR_URL", "https://calendar.google.com/calendar/embed"),
    }


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )
    # Shared-secret tokens for local development (no JWKS round trip)
    AUTH_TOKEN_SECRET = os.getenv("AUTH_TOKEN_SECRET", "dev-portal-token-secret")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STORAGE_BACKEND = "sql"
    LOCAL_STORE_SEED = False
    AUTH_ENABLED = "true"
    AUTH_TOKEN_SECRET = "test-portal-token-secret"
    ADMIN_EMAILS = ["admin@portal.test"]
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if self.STORAGE_BACKEND == "sql" and not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if not (self.AUTH_JWKS_URL or self.AUTH_TOKEN_SECRET):
            raise RuntimeError("AUTH_JWKS_URL or AUTH_TOKEN_SECRET must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
