import logging

import psycopg2
import redis
from fastapi import Request
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from common import config

logger = logging.getLogger(__name__)


def log_database_error(message: str, error: psycopg2.Error):
    """Log a driver error with its SQLSTATE code and server detail."""
    logger.error(
        "%s: %s (code=%s, detail=%s)",
        message,
        error,
        getattr(error, "pgcode", None),
        getattr(getattr(error, "diag", None), "message_detail", None),
    )


class DatabasePool:
    """PostgreSQL connection pool owned by the application instance."""

    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 10):
        try:
            self._pool = pool.ThreadedConnectionPool(
                minconn, maxconn, dsn, connect_timeout=5
            )
            logger.info("Database pool established (min=%s, max=%s)", minconn, maxconn)
        except psycopg2.Error as e:
            log_database_error("Database connection failed", e)
            raise

    @classmethod
    def from_config(cls):
        return cls(config.DATABASE_URL, config.DB_POOL_MIN, config.DB_POOL_MAX)

    def connection(self) -> "DatabaseConnection":
        return DatabaseConnection(self._pool.getconn(), self)

    def release(self, connection):
        self._pool.putconn(connection)

    def check_connection(self):
        db_conn = self.connection()
        try:
            execute_query(db_conn.cursor(), "SELECT 1 AS ok")
        finally:
            db_conn.close()

    def close(self):
        self._pool.closeall()
        logger.info("Database pool closed")


class DatabaseConnection:
    """A connection checked out of the pool for the duration of one request."""

    def __init__(self, connection, owner: DatabasePool):
        self.connection = connection
        self.connection.autocommit = False
        self._owner = owner

    def cursor(self):
        return self.connection.cursor(cursor_factory=RealDictCursor)

    def commit(self):
        self.connection.commit()

    def rollback(self):
        self.connection.rollback()

    def close(self):
        """Discard uncommitted work and hand the connection back to the pool."""
        try:
            self.connection.rollback()
        except psycopg2.Error as e:
            log_database_error("Error rolling back connection", e)
        finally:
            self._owner.release(self.connection)


def get_postgresql_db(request: Request):
    """Provide a pooled database connection to FastAPI routes."""
    db_conn = request.app.state.db_pool.connection()
    try:
        yield db_conn
    finally:
        db_conn.close()


def execute_query(cursor, query, params=None):
    """Helper function to execute a query and fetch one row."""
    cursor.execute(query, params or ())
    return cursor.fetchone()


def execute_query_fetchall(cursor, query, params=None):
    """Helper function to execute a query and fetch all rows."""
    cursor.execute(query, params or ())
    return cursor.fetchall()


def execute(cursor, query, params=None) -> int:
    """Execute a statement that returns no rows; gives the affected row count."""
    cursor.execute(query, params or ())
    return cursor.rowcount


class RedisConnection:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisConnection, cls).__new__(cls)
            cls._instance.connection = redis.StrictRedis(
                host=config.REDIS_HOST,
                port=config.REDIS_PORT,
                password=config.REDIS_PASSWORD,
                decode_responses=True,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            logger.info("Redis client created for %s:%s", config.REDIS_HOST, config.REDIS_PORT)
        return cls._instance

    def close(self):
        try:
            self.connection.close()
            logger.info("Redis connection closed")
        except redis.RedisError as e:
            logger.warning("Error closing Redis connection: %s", e)


def get_redis_connection():
    """Provide a Redis client, or None when Redis is not configured."""
    if not config.REDIS_HOST:
        yield None
        return
    yield RedisConnection().connection
