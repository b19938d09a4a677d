import logging
from datetime import datetime, timezone
from functools import wraps

import psycopg2
from fastapi import HTTPException, status
from pydantic import ValidationError

from common.database import log_database_error

logger = logging.getLogger(__name__)


def db_connection_handler(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)

        except HTTPException:
            raise
        except psycopg2.Error as e:
            log_database_error(f"PostgreSQL error in {func.__name__}", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database operation failed",
            )
        except ValidationError as e:
            logger.error("Invalid data while building a response in %s: %s", func.__name__, e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error",
            )
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            )

    return wrapper


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value):
    """Treat naive timestamps coming from the driver as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_int(value, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def success(data=None, **extra):
    """Envelope used by every JSON response."""
    body = {"status": "success"}
    body.update(extra)
    if data is not None:
        body["data"] = data
    return body
