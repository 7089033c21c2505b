"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()

from db.connection import DBConfig  # noqa: E402
from utils.logger import set_level  # noqa: E402


# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "blog")
DB_USER: str = os.getenv("DB_USER", "blog_user")
DB_PASS: str = os.getenv("DB_PASS", "")

# ── Connection pool ───────────────────────────────────────
DB_MAX_OPEN_CONNS: int = int(os.getenv("DB_MAX_OPEN_CONNS", "25"))
DB_MAX_IDLE_CONNS: int = int(os.getenv("DB_MAX_IDLE_CONNS", "5"))
DB_CONN_MAX_LIFETIME: float = float(os.getenv("DB_CONN_MAX_LIFETIME", "300"))
DB_CONNECT_TIMEOUT: int = int(os.getenv("DB_CONNECT_TIMEOUT", "5"))

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
set_level(LOG_LEVEL)


def get_db_config(**overrides) -> DBConfig:
    """
    Build the resolved database settings from the constants above.

    Args:
        **overrides: DBConfig fields to replace (e.g. dbname for tests).
    """
    settings = dict(
        host=DB_HOST,
        port=DB_PORT,
        user=DB_USER,
        password=DB_PASS,
        dbname=DB_NAME,
        max_open_conns=DB_MAX_OPEN_CONNS,
        max_idle_conns=DB_MAX_IDLE_CONNS,
        conn_max_lifetime=DB_CONN_MAX_LIFETIME,
        connect_timeout=DB_CONNECT_TIMEOUT,
    )
    settings.update(overrides)
    return DBConfig(**settings)
