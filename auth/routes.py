import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from fastapi.concurrency import run_in_threadpool

from common import config
from common.auth_utils import create_access_token, require_organizer, require_seller
from common.database import get_postgresql_db
from common.helpers import db_connection_handler, success, utcnow
from common.mailer import (
    EmailConfigurationError,
    EmailDeliveryError,
    deliver_quietly,
    send_password_reset_email,
    send_welcome_email,
)

from . import crud
from .constants import (
    PASSWORD_RESET_EXPIRE_MINUTES,
    TOKEN_COOKIE_NAME,
    AccountStatus,
    UserRoles,
)
from .models import (
    AccountCreate,
    AccountResponse,
    ForgotPasswordRequest,
    LoginRequest,
    PasswordUpdate,
    ProfileUpdate,
    ResetPasswordRequest,
)

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = (
    "If an account exists with this email, a password reset link has been sent."
)


def set_token_cookie(response: Response, token: str):
    response.set_cookie(
        TOKEN_COOKIE_NAME,
        token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=config.is_production(),
        samesite="lax",
    )


def issue_token(response: Response, account: dict) -> str:
    token = create_access_token({"id": account["id"], "email": account["email"]})
    set_token_cookie(response, token)
    return token


def build_account_router(role: str, table: str, require_account) -> APIRouter:
    """Credential lifecycle routes shared by organizers and sellers."""
    router = APIRouter()

    @router.post("/register", status_code=status.HTTP_201_CREATED)
    @db_connection_handler
    async def register(
        account: AccountCreate,
        response: Response,
        background_tasks: BackgroundTasks,
        db_conn=Depends(get_postgresql_db),
    ):
        if crud.find_by_email(db_conn, table, account.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered"
            )
        created = crud.create_account(db_conn, table, account)
        token = issue_token(response, created)
        background_tasks.add_task(
            deliver_quietly, send_welcome_email, created["email"], created["full_name"], role
        )
        return success(
            {"user": AccountResponse(**created)}, access_token=token, token_type="bearer"
        )

    @router.post("/login")
    @db_connection_handler
    async def login(
        credentials: LoginRequest,
        response: Response,
        db_conn=Depends(get_postgresql_db),
    ):
        account = crud.find_by_email(db_conn, table, credentials.email)
        if not account or not crud.verify_password(credentials.password, account["password"]):
            logger.info("Failed %s login for %s", role, credentials.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if account.get("status") == AccountStatus.SUSPENDED:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This account has been suspended",
            )
        crud.update_last_login(db_conn, table, account["id"])
        token = issue_token(response, account)
        return success(
            {"user": AccountResponse(**account)}, access_token=token, token_type="bearer"
        )

    @router.post("/logout")
    async def logout(response: Response):
        response.delete_cookie(TOKEN_COOKIE_NAME)
        return {"status": "success", "message": "Logged out"}

    @router.post("/forgot-password")
    @db_connection_handler
    async def forgot_password(body: ForgotPasswordRequest, db_conn=Depends(get_postgresql_db)):
        account = crud.find_by_email(db_conn, table, body.email)
        if not account:
            return {"status": "success", "message": FORGOT_PASSWORD_MESSAGE}

        token = secrets.token_urlsafe(32)
        expires = utcnow() + timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES)
        crud.set_password_reset_token(
            db_conn, table, body.email, crud.hash_reset_token(token), expires
        )
        try:
            await run_in_threadpool(send_password_reset_email, body.email, token, role)
        except (EmailConfigurationError, EmailDeliveryError):
            crud.set_password_reset_token(db_conn, table, body.email, None, None)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="There was an error sending the email. Try again later!",
            )
        return {"status": "success", "message": FORGOT_PASSWORD_MESSAGE}

    @router.post("/reset-password/{token}")
    @db_connection_handler
    async def reset_password(
        token: str,
        body: ResetPasswordRequest,
        response: Response,
        db_conn=Depends(get_postgresql_db),
    ):
        account = crud.reset_password(db_conn, table, crud.hash_reset_token(token), body.password)
        if not account:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Token is invalid or has expired",
            )
        logger.info("Password reset for %s %s", role, account["id"])
        access_token = issue_token(response, account)
        return {
            "status": "success",
            "message": "Password has been reset",
            "access_token": access_token,
            "token_type": "bearer",
        }

    @router.get("/me")
    @db_connection_handler
    async def get_current_user(
        identity=Depends(require_account),
        db_conn=Depends(get_postgresql_db),
    ):
        account = crud.find_by_id(db_conn, table, identity.id)
        if not account:
            raise HTTPException(status_code=404, detail="User not found")
        return success({"user": AccountResponse(**account)})

    @router.patch("/update-profile")
    @db_connection_handler
    async def update_profile(
        body: ProfileUpdate,
        identity=Depends(require_account),
        db_conn=Depends(get_postgresql_db),
    ):
        changes = body.changes()
        if "email" in changes:
            existing = crud.find_by_email(db_conn, table, changes["email"])
            if existing and existing["id"] != identity.id:
                raise HTTPException(status_code=400, detail="Email already registered")
        account = crud.update_profile(db_conn, table, identity.id, changes)
        if not account:
            raise HTTPException(status_code=404, detail="User not found")
        return success({"user": AccountResponse(**account)})

    @router.patch("/update-password")
    @db_connection_handler
    async def update_password(
        body: PasswordUpdate,
        response: Response,
        identity=Depends(require_account),
        db_conn=Depends(get_postgresql_db),
    ):
        account = crud.find_by_email(db_conn, table, identity.email)
        if not account or not crud.verify_password(body.current_password, account["password"]):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Your current password is wrong",
            )
        crud.update_password(db_conn, table, identity.id, body.new_password)
        token = issue_token(response, account)
        return {"status": "success", "access_token": token, "token_type": "bearer"}

    return router


organizers = build_account_router(UserRoles.ORGANIZER, "organizers", require_organizer)
sellers = build_account_router(UserRoles.SELLER, "sellers", require_seller)
