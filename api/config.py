"""
Environment-aware configuration.
Every value can be overridden from the environment (or a .env file).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    API_PREFIX = os.getenv("API_PREFIX", "/api/v1")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///chat-auth.db")
    SQL_ECHO = False

    # Access tokens (signed JWT)
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "3600")))
    # Refresh sessions (opaque, persisted)
    REFRESH_TOKEN_EXPIRES = timedelta(days=int(os.getenv("REFRESH_TOKEN_EXPIRES_DAYS", "30")))

    # Cookies
    ACCESS_COOKIE_NAME = os.getenv("ACCESS_COOKIE_NAME", "jwt")
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", "false")

    # Revocation registry: "memory" for a single process, "redis" when several share it
    REVOCATION_BACKEND = os.getenv("REVOCATION_BACKEND", "memory")
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Background maintenance
    START_SCHEDULER = _env_bool("START_SCHEDULER", "true")
    BLACKLIST_SWEEP_INTERVAL_SECONDS = int(os.getenv("BLACKLIST_SWEEP_INTERVAL_SECONDS", "3600"))
    REFRESH_SWEEP_INTERVAL_SECONDS = int(os.getenv("REFRESH_SWEEP_INTERVAL_SECONDS", "3600"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQL_ECHO = _env_bool("SQL_ECHO", "false")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")
    JWT_SECRET = "test-secret-key-for-testing-only"
    START_SCHEDULER = False
    REVOCATION_BACKEND = "memory"


class ProductionConfig(BaseConfig):
    DEBUG = False
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", "true")


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
