"""Application configuration module."""

import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration for the Flask application."""

    # Core
    SECRET_KEY = os.getenv("SESSION_SECRET", os.getenv("SECRET_KEY", "change-me"))
    JWT_SECRET_KEY = os.getenv("JWT_SECRET", os.getenv("JWT_SECRET_KEY", SECRET_KEY))
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///database.sqlite")
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    RESET_DB = _env_flag("RESET_DB")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Sessions
    SESSION_COOKIE_NAME = "session"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE")
    PERMANENT_SESSION_LIFETIME = timedelta(days=1)
    REMEMBER_COOKIE_DURATION = timedelta(days=7)
    REMEMBER_COOKIE_HTTPONLY = True

    # Confirmation tokens
    TOKEN_TTL = timedelta(hours=1)
    VERIFY_TOKEN_TTL = timedelta(hours=int(os.getenv("VERIFY_TOKEN_TTL_HOURS", "1")))
    VERIFY_AUTO_LOGIN = _env_flag("VERIFY_AUTO_LOGIN", "true")
    APP_HOST = os.getenv("APP_HOST")
    # Host headers outside this list are rejected with 400. Defaults to APP_HOST.
    TRUSTED_HOSTS = [
        h.strip() for h in os.getenv("TRUSTED_HOSTS", "").split(",") if h.strip()
    ] or ([APP_HOST] if APP_HOST else None)

    # Posting
    ALLOW_ANONYMOUS_POSTS = _env_flag("ALLOW_ANONYMOUS_POSTS")

    # Mail
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_DEFAULT_SENDER = os.getenv(
        "MAIL_DEFAULT_SENDER", '"Byte-Sized Bits" <noreply@yourapp.com>'
    )
    MAIL_TIMEOUT = int(os.getenv("MAIL_TIMEOUT", "10"))

    # CORS
    _raw_origins = os.getenv("ORIGINS", "*")
    if _raw_origins.strip() == "*":
        CORS_ORIGINS = "*"
    else:
        CORS_ORIGINS = [o.strip() for o in _raw_origins.split(",") if o.strip()]

    # Rate limiting
    RATE_LIMIT = os.getenv("RATE_LIMIT", "300 per 15 minutes")
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_KEY_PREFIX = os.getenv("RATELIMIT_KEY_PREFIX", "")
