"""
Application configuration, read once from the environment (and .env) at import.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.environ.get("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"

SECRET_KEY = os.environ.get("SECRET_KEY", "")
if not SECRET_KEY:
    if IS_PRODUCTION:
        raise ValueError("SECRET_KEY environment variable is not set")
    SECRET_KEY = "electro-mart-dev-secret"
ALGORITHM = "HS256"
SESSION_COOKIE = "electromart_session"
SESSION_MAX_AGE_DAYS = int(os.environ.get("SESSION_MAX_AGE_DAYS", "7"))

# Storage: DATABASE_URL selects the SQL backend, otherwise a JSON file is used
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
STORAGE_FILE = os.environ.get("STORAGE_FILE", "").strip() or os.path.join("data", "electromart.json")
CONFIG_DIR = os.environ.get("CONFIG_DIR", "").strip() or os.path.join("data", "config")
UPLOADS_DIR = os.environ.get("UPLOADS_DIR", "").strip() or os.path.join("public", "uploads")

DELIVERY_FEE = float(os.environ.get("DELIVERY_FEE", "500"))

ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "").strip()
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "").strip()

SHIPPING_ENV = {
    "api_url": os.environ.get("SHIPPING_API_URL", "").strip(),
    "api_id": os.environ.get("SHIPPING_API_ID", "").strip(),
    "api_token": os.environ.get("SHIPPING_API_TOKEN", "").strip(),
    "from_wilaya_name": os.environ.get("SHIPPING_FROM_WILAYA_NAME", "").strip(),
    "default_commune": os.environ.get("SHIPPING_DEFAULT_COMMUNE", "").strip(),
}
SHIPPING_HTTP_TIMEOUT = float(os.environ.get("SHIPPING_HTTP_TIMEOUT", "30"))

# TELEGRAM_BOT_TOKE is a misspelling seen in older deployments
TELEGRAM_BOT_TOKEN = (
    os.environ.get("TELEGRAM_BOT_TOKEN") or os.environ.get("TELEGRAM_BOT_TOKE") or ""
).strip()
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID", "").strip()

SITE_LOGO_URL = os.environ.get("SITE_LOGO_URL", "").strip()

PORT = int(os.environ.get("PORT", "5000"))

LOG_FILE = os.environ.get("LOG_FILE", "").strip()
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def setup_logging():
    """Configure the root logger; a no-op when handlers already exist."""
    options = {
        "level": getattr(logging, LOG_LEVEL, logging.INFO),
        "format": "%(asctime)s - %(levelname)s - %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
    }
    if LOG_FILE:
        options["filename"] = LOG_FILE
    logging.basicConfig(**options)
