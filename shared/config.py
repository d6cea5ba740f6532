# shared/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    APP_NAME = os.getenv("APP_NAME", "LR Inventory Backend")
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
    DEBUG = _get_bool("DEBUG")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "")
    LOG_TO_FILE = _get_bool("LOG_TO_FILE")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./lr_inventory.db")
    SQL_ECHO = _get_bool("SQL_ECHO")

    SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key")
    ALGORITHM = os.getenv("ALGORITHM", "HS256")
    # Sliding inactivity window: every refresh issues a token good for this long
    SESSION_TIMEOUT_MINUTES = int(os.getenv("SESSION_TIMEOUT_MINUTES", "30"))

    CORS_ORIGINS = _get_list("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")

    DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

    DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
    DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")


settings = Settings()
