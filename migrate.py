"""Apply the SQL files in ``migrations/`` in filename order.

Applied files are recorded in ``schema_migrations`` and skipped on later runs.
"""
import logging
import os
import sys

import psycopg2

from common import config
from common.database import log_database_error

logger = logging.getLogger("migrate")

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")


def pending_migrations(applied: set) -> list:
    files = sorted(name for name in os.listdir(MIGRATIONS_DIR) if name.endswith(".sql"))
    return [name for name in files if name not in applied]


def run_migrations(dsn: str) -> list:
    connection = psycopg2.connect(dsn)
    try:
        with connection.cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    filename VARCHAR(255) PRIMARY KEY,
                    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
            cursor.execute("SELECT filename FROM schema_migrations")
            applied = {row[0] for row in cursor.fetchall()}
        connection.commit()

        done = []
        for filename in pending_migrations(applied):
            with open(os.path.join(MIGRATIONS_DIR, filename), "r") as f:
                statements = f.read()
            logger.info("Applying %s", filename)
            try:
                with connection.cursor() as cursor:
                    cursor.execute(statements)
                    cursor.execute(
                        "INSERT INTO schema_migrations (filename) VALUES (%s)", (filename,)
                    )
                connection.commit()
            except psycopg2.Error:
                connection.rollback()
                raise
            done.append(filename)
        return done
    finally:
        connection.close()


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
    if not config.DATABASE_URL:
        logger.error("POSTGRES_DATABASE_URL is not set")
        sys.exit(1)
    try:
        applied = run_migrations(config.DATABASE_URL)
    except psycopg2.Error as e:
        log_database_error("Migration failed", e)
        sys.exit(1)
    logger.info("Applied %d migration(s)", len(applied))
