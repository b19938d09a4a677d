"""SQL for the two credential tables, ``organizers`` and ``sellers``.

Both tables share the same columns, so every function takes the table name
and composes it with ``sql.Identifier``.
"""
import hashlib
import logging
from datetime import datetime
from typing import Optional

from passlib.context import CryptContext
from psycopg2 import sql

from common.database import execute, execute_query, execute_query_fetchall

from .models import AccountCreate

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PUBLIC_COLUMNS = sql.SQL("id, full_name, email, phone, status, created_at")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def hash_reset_token(token: str) -> str:
    """Reset tokens are stored as a SHA-256 digest, never in clear."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def find_by_email(db_conn, table: str, email: str) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        sql.SQL("SELECT * FROM {} WHERE email = %s").format(sql.Identifier(table)),
        (email,),
    )
    return dict(row) if row else None


def find_by_id(db_conn, table: str, account_id: int) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        sql.SQL("SELECT {} FROM {} WHERE id = %s").format(
            PUBLIC_COLUMNS, sql.Identifier(table)
        ),
        (account_id,),
    )
    return dict(row) if row else None


def list_accounts(db_conn, table: str) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        sql.SQL("SELECT {} FROM {} ORDER BY created_at DESC").format(
            PUBLIC_COLUMNS, sql.Identifier(table)
        ),
    )
    return [dict(row) for row in rows]


def create_account(db_conn, table: str, account: AccountCreate) -> dict:
    row = execute_query(
        db_conn.cursor(),
        sql.SQL(
            """
            INSERT INTO {} (full_name, email, phone, password)
            VALUES (%s, %s, %s, %s)
            RETURNING {}
            """
        ).format(sql.Identifier(table), PUBLIC_COLUMNS),
        (
            account.full_name,
            account.email,
            account.phone,
            get_password_hash(account.password),
        ),
    )
    db_conn.commit()
    logger.info("Created %s account %s", table, row["id"])
    return dict(row)


def update_last_login(db_conn, table: str, account_id: int):
    execute(
        db_conn.cursor(),
        sql.SQL("UPDATE {} SET last_login = CURRENT_TIMESTAMP WHERE id = %s").format(
            sql.Identifier(table)
        ),
        (account_id,),
    )
    db_conn.commit()


def update_profile(db_conn, table: str, account_id: int, updates: dict) -> Optional[dict]:
    """Update only the columns present in ``updates``."""
    if not updates:
        raise ValueError("No valid fields provided for update")
    assignments = sql.SQL(", ").join(
        sql.SQL("{} = %s").format(sql.Identifier(column)) for column in updates
    )
    row = execute_query(
        db_conn.cursor(),
        sql.SQL(
            "UPDATE {} SET {}, updated_at = CURRENT_TIMESTAMP WHERE id = %s RETURNING {}"
        ).format(sql.Identifier(table), assignments, PUBLIC_COLUMNS),
        (*updates.values(), account_id),
    )
    db_conn.commit()
    return dict(row) if row else None


def update_password(db_conn, table: str, account_id: int, new_password: str):
    execute(
        db_conn.cursor(),
        sql.SQL(
            "UPDATE {} SET password = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s"
        ).format(sql.Identifier(table)),
        (get_password_hash(new_password), account_id),
    )
    db_conn.commit()


def set_password_reset_token(db_conn, table: str, email: str, token_digest: Optional[str], expires: Optional[datetime]):
    execute(
        db_conn.cursor(),
        sql.SQL(
            """
            UPDATE {}
            SET password_reset_token = %s, password_reset_expires = %s
            WHERE email = %s
            """
        ).format(sql.Identifier(table)),
        (token_digest, expires, email),
    )
    db_conn.commit()


def reset_password(db_conn, table: str, token_digest: str, new_password: str) -> Optional[dict]:
    """Set the new password if the token matches and has not expired. A used
    token is cleared together with its expiry."""
    row = execute_query(
        db_conn.cursor(),
        sql.SQL(
            """
            UPDATE {}
            SET password = %s,
                password_reset_token = NULL,
                password_reset_expires = NULL,
                updated_at = CURRENT_TIMESTAMP
            WHERE password_reset_token = %s
              AND password_reset_expires > NOW()
            RETURNING id, email
            """
        ).format(sql.Identifier(table)),
        (get_password_hash(new_password), token_digest),
    )
    db_conn.commit()
    return dict(row) if row else None


def set_status(db_conn, table: str, account_id: int, status: str) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        sql.SQL(
            "UPDATE {} SET status = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s RETURNING {}"
        ).format(sql.Identifier(table), PUBLIC_COLUMNS),
        (status, account_id),
    )
    db_conn.commit()
    return dict(row) if row else None
