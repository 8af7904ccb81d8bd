# backend/academy/config.py
"""
Environment configuration for the academy backend.

Values are read once at import time (after loading an optional .env file) into
module-level constants. `validate_environment()` is called from the app lifespan
and reports missing or weak settings before the server starts taking requests.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL")

# Sessions
SESSION_SECRET = os.getenv("SESSION_SECRET", "CHANGE_ME_TO_A_SECURE_RANDOM_KEY")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "academy_session")
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))

# OTP
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "5"))
# Rate limit strings in the "N per period" notation understood by `limits`
OTP_REQUEST_LIMIT = os.getenv("OTP_REQUEST_LIMIT", "3 per minute")
OTP_VERIFY_LIMIT = os.getenv("OTP_VERIFY_LIMIT", "5 per minute")
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "91")
ACADEMY_NAME = os.getenv("ACADEMY_NAME", "Pooja Academy")

# SMS (Twilio)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")

# Email (SMTP)
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_FROM = os.getenv("SMTP_FROM") or SMTP_USER or "no-reply@academy.local"

# Bootstrap admin, seeded with a hashed password on startup
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_FULL_NAME = os.getenv("ADMIN_FULL_NAME", "Administrator")

OBJECT_STORAGE_DIR = os.getenv("OBJECT_STORAGE_DIR", os.path.join(os.getcwd(), "object_storage"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

REQUIRED_ENV_VARS = ["DATABASE_URL"]
RECOMMENDED_ENV_VARS = [
    "SESSION_SECRET",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_PHONE_NUMBER",
    "SMTP_HOST",
    "ADMIN_EMAIL",
    "ADMIN_PASSWORD",
]
PLACEHOLDER_MARKERS = ("CHANGE", "your-")


class ConfigurationError(RuntimeError):
    pass


def sms_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER)


def smtp_configured() -> bool:
    return bool(SMTP_HOST)


def validate_environment(environ=None) -> dict:
    """
    Check the environment before startup.

    Missing required variables raise ConfigurationError. Missing recommended
    variables only log a warning; the features behind them fall back to logging.
    Returns a summary dict of what is missing.
    """
    env = os.environ if environ is None else environ
    missing_required = [name for name in REQUIRED_ENV_VARS if not env.get(name)]
    missing_recommended = [name for name in RECOMMENDED_ENV_VARS if not env.get(name)]

    if missing_required:
        raise ConfigurationError(
            "Missing required environment variables: " + ", ".join(missing_required)
        )

    if missing_recommended:
        logger.warning(
            "Missing recommended environment variables: %s. Some features will fall back to logging.",
            ", ".join(missing_recommended),
        )

    secret = env.get("SESSION_SECRET", "")
    if secret and len(secret) < 32:
        logger.warning("SESSION_SECRET should be at least 32 characters long.")
    if not secret or any(marker in secret for marker in PLACEHOLDER_MARKERS):
        if env.get("APP_ENV") == "production":
            raise ConfigurationError("SESSION_SECRET must be set to a real secret in production.")
        logger.warning("SESSION_SECRET is unset or a placeholder; sessions are not secure.")

    return {"missing_required": missing_required, "missing_recommended": missing_recommended}
