"""
main.py
-------
Entry point for provisioning the article store.

Responsibilities:
    - Resolve the database configuration from the environment.
    - Open a connection handle and provision the articles schema.
    - Close the handle again.

Run:
    python main.py
"""

import sys

from config import get_db_config
from db.connection import ConnectionHandle
from db.errors import StoreError
from repositories.article_repo import ArticleRepository
from utils.logger import get_logger

logger = get_logger(__name__)


def main() -> int:
    """Provision the schema; returns the process exit code."""
    config = get_db_config()
    logger.info(f"Provisioning schema on {config.host}:{config.port}/{config.dbname}...")
    try:
        with ConnectionHandle.open(config) as handle:
            ArticleRepository(handle).ensure_schema()
    except StoreError as e:
        logger.error(f"Provisioning failed: {e}")
        return 1
    logger.info("Article store is ready.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
