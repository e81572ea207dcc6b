import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

POSTGRES_USER = os.getenv("POSTGRES_USER")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")
POSTGRES_DB = os.getenv("POSTGRES_DB_URL")

postgres_file_name = f"{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_DB}"

# Full override, e.g. sqlite+aiosqlite:///./turnier.db for local runs
DATABASE_URL = os.getenv("DATABASE_URL", f"postgresql+asyncpg://{postgres_file_name}")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def _seed() -> Optional[int]:
    raw = os.getenv("TURNIER_SEED")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


TURNIER_SEED = _seed()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "sqlalchemy.engine": {"level": "WARNING"},
        "asyncpg": {"level": "WARNING"},
    },
}
