"""
Environment-aware configuration.
Secrets, token lifetimes, refresh-cookie flags, storage and mail settings.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Storage
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///library.db")
    STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
    # One retry of a failed refresh-token write, never more
    SESSION_WRITE_ATTEMPTS = int(os.getenv("SESSION_WRITE_ATTEMPTS", "2"))

    # Tokens: access and refresh tokens are signed with different keys
    ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", "dev-access-secret-change-me")
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "dev-refresh-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "library-catalogue-api")
    ACCESS_TOKEN_EXPIRES = timedelta(minutes=int(os.getenv("ACCESS_TOKEN_EXPIRES_MINUTES", "15")))
    REFRESH_TOKEN_EXPIRES = timedelta(days=int(os.getenv("REFRESH_TOKEN_EXPIRES_DAYS", "7")))

    # Refresh-token cookie
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refreshToken")
    REFRESH_COOKIE_PATH = "/"
    REFRESH_COOKIE_SAMESITE = "Strict"
    REFRESH_COOKIE_SECURE = _flag("REFRESH_COOKIE_SECURE", "true")

    # Accounts
    ALLOWED_ROLES = os.getenv("ALLOWED_ROLES", "user,admin").split(",")
    # Out-of-band key for admin self-registration; unset disables it
    ADMIN_REGISTRATION_KEY = os.getenv("ADMIN_REGISTRATION_KEY")

    # Password reset
    RESET_CODE_EXPIRES = timedelta(minutes=int(os.getenv("RESET_CODE_EXPIRES_MINUTES", "10")))
    RESET_CODE_LENGTH = int(os.getenv("RESET_CODE_LENGTH", "6"))

    # Mail
    MAIL_BACKEND = os.getenv("MAIL_BACKEND", "log")
    MAIL_FROM = os.getenv("MAIL_FROM", "no-reply@library.local")
    SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS = _flag("SMTP_USE_TLS", "true")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # Cookies over plain http in dev
    REFRESH_COOKIE_SECURE = _flag("REFRESH_COOKIE_SECURE", "false")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///library-test.db")
    ACCESS_TOKEN_SECRET = "test-access-secret"
    REFRESH_TOKEN_SECRET = "test-refresh-secret"
    REFRESH_COOKIE_SECURE = False
    ADMIN_REGISTRATION_KEY = "test-admin-key"
    MAIL_BACKEND = "log"
    LOG_LEVEL = "WARNING"


class ProductionConfig(BaseConfig):
    DEBUG = False
    REFRESH_COOKIE_SECURE = True


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
