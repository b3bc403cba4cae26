"""
Environment-aware configuration.
Values come from the process environment (and .env if present); each
environment class only overrides what differs.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_int(name: str):
    value = os.getenv(name)
    return int(value) if value else None


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # access tokens
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "session-auth-api")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))

    # refresh secrets and hashing; work factor is a deployment-time setting
    REFRESH_TOKEN_BYTES = int(os.getenv("REFRESH_TOKEN_BYTES", "32"))
    PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))
    HASH_TIME_COST = _env_int("HASH_TIME_COST")
    HASH_MEMORY_COST = _env_int("HASH_MEMORY_COST")
    HASH_PARALLELISM = _env_int("HASH_PARALLELISM")
    # conditional rotation write; False restores last-write-wins
    GUARD_REFRESH_RACE = _env_bool("GUARD_REFRESH_RACE", "true")

    # persistence
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///session-auth.db")
    DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))
    SQL_ECHO = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    STORAGE_BACKEND = "memory"
    JWT_SECRET = "test-secret-key-for-testing-only"
    # cheap argon2 parameters; tests hash a lot
    HASH_TIME_COST = 1
    HASH_MEMORY_COST = 1024
    HASH_PARALLELISM = 1
    GUARD_REFRESH_RACE = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    # no fallback: an unset key stops the app at boot
    JWT_SECRET = os.getenv("JWT_SECRET")


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
