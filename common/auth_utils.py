import logging
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional, Union

import jwt
import psycopg2
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from auth.constants import ADMIN_SUBJECT, TOKEN_COOKIE_NAME, UserRoles
from common import config
from common.database import execute_query, get_postgresql_db, log_database_error

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/organizers/login", auto_error=False)


class SellerIdentity(BaseModel):
    kind: Literal["seller"] = UserRoles.SELLER
    id: int
    email: str
    name: Optional[str] = None


class OrganizerIdentity(BaseModel):
    kind: Literal["organizer"] = UserRoles.ORGANIZER
    id: int
    email: str
    name: Optional[str] = None


class AdminIdentity(BaseModel):
    kind: Literal["admin"] = UserRoles.ADMIN
    id: str = ADMIN_SUBJECT
    email: str


Identity = Union[SellerIdentity, OrganizerIdentity, AdminIdentity]


class AuthenticationError(HTTPException):
    """Base for every 401 raised while resolving a caller's identity."""

    kind = "unauthenticated"
    message = "Authentication failed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail or self.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotAuthenticated(AuthenticationError):
    kind = "missing_token"
    message = "You are not logged in! Please log in to get access."


class InvalidToken(AuthenticationError):
    kind = "invalid_token"
    message = "Invalid token. Please log in again!"


class TokenExpired(AuthenticationError):
    kind = "expired_token"
    message = "Your token has expired! Please log in again."


class UserNoLongerExists(AuthenticationError):
    kind = "user_missing"
    message = "The user belonging to this token no longer exists."


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        if expires_delta
        else timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def verify_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise InvalidToken()

    exp = payload.get("exp")
    if exp is None:
        raise InvalidToken()
    if datetime.fromtimestamp(exp, tz=timezone.utc) < datetime.now(timezone.utc):
        raise TokenExpired()
    if payload.get("id") is None:
        raise InvalidToken()
    return payload


def extract_token(request: Request, bearer: Optional[str] = None) -> Optional[str]:
    """Find the token in the Authorization header, the cookie, or (outside
    production) the query string, in that order."""
    if bearer:
        return bearer
    cookie_token = request.cookies.get(TOKEN_COOKIE_NAME)
    if cookie_token:
        return cookie_token
    if not config.is_production():
        return request.query_params.get("token")
    return None


def lookup_account(db_conn, user_id) -> Optional[Identity]:
    """Look the id up in sellers first, then organizers."""
    cursor = db_conn.cursor()
    seller = execute_query(
        cursor,
        "SELECT id, email, full_name AS name FROM sellers WHERE id = %s",
        (user_id,),
    )
    if seller:
        return SellerIdentity(**seller)

    organizer = execute_query(
        cursor,
        "SELECT id, email, full_name AS name FROM organizers WHERE id = %s",
        (user_id,),
    )
    if organizer:
        return OrganizerIdentity(**organizer)
    return None


def resolve_identity(payload: dict, db_conn) -> Identity:
    subject = payload["id"]
    if subject == ADMIN_SUBJECT:
        return AdminIdentity(email=config.ADMIN_EMAIL)

    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise InvalidToken()

    try:
        identity = lookup_account(db_conn, user_id)
    except psycopg2.Error as e:
        log_database_error("Database error during user lookup", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error during authentication",
        )
    if identity is None:
        raise UserNoLongerExists()
    return identity


async def get_current_identity(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    db_conn=Depends(get_postgresql_db),
) -> Identity:
    try:
        token = extract_token(request, bearer)
        if not token:
            raise NotAuthenticated()
        payload = verify_token(token)
        return resolve_identity(payload, db_conn)
    except AuthenticationError as e:
        logger.info(
            "Authentication rejected (%s) for %s %s",
            e.kind,
            request.method,
            request.url.path,
        )
        raise


def _require(kind: str):
    async def dependency(identity: Identity = Depends(get_current_identity)):
        if identity.kind != kind:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires a {kind} account",
            )
        return identity

    dependency.__name__ = f"require_{kind}"
    return dependency


require_organizer = _require(UserRoles.ORGANIZER)
require_seller = _require(UserRoles.SELLER)
require_admin = _require(UserRoles.ADMIN)
