"""
Settings per environment, selected by APP_ENV (development, testing,
production). Everything deploy-specific comes from environment variables.
"""

import os
import secrets
import tempfile

PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

LOCAL_SQLITE_URL = f"sqlite:///{os.path.join(PROJECT_ROOT, 'instance', 'warisin_dev.db')}"
IN_MEMORY_SQLITE_URL = "sqlite:///:memory:"


def _env_flag(name, default):
    return os.getenv(name, default).strip().lower() == "true"


def _database_url(fallback=None):
    # Hosted Postgres often advertises the legacy postgres:// scheme
    url = os.getenv("DATABASE_URL", "")
    if not url:
        return fallback
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Rate-limit storage; the limiter falls back to memory:// when unset
    REDIS_URL = os.getenv("REDIS_URL")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Program media uploads are the largest bodies we accept
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(50 * 1024 * 1024)))

    # X-API-Key guard on category management and admin endpoints
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")

    # Firebase ID tokens are the only accepted identity assertion
    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
    FIREBASE_JWKS_URL = os.getenv(
        "FIREBASE_JWKS_URL",
        "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com",
    )

    SESSION_COOKIE_NAME_WARISIN = os.getenv("SESSION_COOKIE_NAME_WARISIN", "warisin_session")
    SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", "false")

    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")  # local | s3
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER")  # None means <instance>/uploads
    S3_BUCKET = os.getenv("S3_BUCKET")
    S3_REGION = os.getenv("S3_REGION", "us-east-1")
    S3_PUBLIC_BASE_URL = os.getenv("S3_PUBLIC_BASE_URL")

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    LLM_DEFAULT_CHAT_MODEL = os.getenv("LLM_DEFAULT_CHAT_MODEL", "gemini-2.5-flash")
    LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    APP_ENV = "development"
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(LOCAL_SQLITE_URL)
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    APP_ENV = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", IN_MEMORY_SQLITE_URL)
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False
    FIREBASE_PROJECT_ID = "warisin-test"
    STORAGE_BACKEND = "local"
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), "warisin-test-uploads")
    GEMINI_API_KEY = ""
    LLM_MAX_RETRIES = 1


class ProductionConfig(Config):
    APP_ENV = "production"
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", "true")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    REQUIRED_ENV = ("DATABASE_URL", "SECRET_KEY", "FIREBASE_PROJECT_ID")

    def __init__(self):
        missing = [name for name in self.REQUIRED_ENV if not os.getenv(name)]
        if missing:
            raise RuntimeError(f"Missing required environment for production: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
