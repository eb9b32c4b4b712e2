"""
Create the MindFlow tables (and the full-text index on MySQL/PostgreSQL).

Run with `python -m app.db.init_db` or the `mindflow-init-db` script.
"""
import logging
from app.core.logging_config import configure_logging
from app.db.session import engine, init_db

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging()
    logger.info(f"Initializing database at {engine.url.render_as_string(hide_password=True)}")
    init_db()
    logger.info("Database initialized")


if __name__ == "__main__":
    main()
