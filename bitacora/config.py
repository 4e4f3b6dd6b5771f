"""
Bitacora project dashboard
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'bitacora_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _int_env(name, default=None):
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    return int(raw)


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

    # Tabular store: "sql" (app database) or "rest" (PostgREST endpoint)
    STORE_BACKEND = os.getenv("STORE_BACKEND", "sql")
    STORE_URL = os.getenv("STORE_URL", "")
    STORE_SERVICE_KEY = os.getenv("STORE_SERVICE_KEY", "")
    STORE_PUBLIC_KEY = os.getenv("STORE_PUBLIC_KEY", "")
    STORE_TIMEOUT_SECONDS = _int_env("STORE_TIMEOUT_SECONDS", 15)

    # Share links
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://bitacora.localhost:5000")
    INTERNAL_HOST_SEGMENT = os.getenv("INTERNAL_HOST_SEGMENT", "bitacora")
    CLIENT_HOST_SEGMENT = os.getenv("CLIENT_HOST_SEGMENT", "bitacora-client")
    # None / 0 → permanent client links
    SHARE_LINK_TTL_DAYS = _int_env("SHARE_LINK_TTL_DAYS")

    # Client view
    SUPPORT_CONTACT = os.getenv("SUPPORT_CONTACT", "support@bitacora.local")
    CLIENT_RATE_LIMIT = os.getenv("CLIENT_RATE_LIMIT", "30/minute")
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STORE_BACKEND = "sql"
    PUBLIC_BASE_URL = "https://bitacora.example.com"
    SHARE_LINK_TTL_DAYS = None
    SUPPORT_CONTACT = "support@example.com"
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
        if self.STORE_BACKEND == "rest":
            if not self.STORE_URL:
                raise RuntimeError("STORE_URL environment variable is required for the rest store")
        elif not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
