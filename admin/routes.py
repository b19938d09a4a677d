import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from auth import crud as account_crud
from auth.constants import ADMIN_SUBJECT
from auth.models import AccountResponse, LoginRequest, StatusUpdate
from auth.routes import set_token_cookie
from common import config
from common.auth_utils import create_access_token, require_admin
from common.database import get_postgresql_db
from common.helpers import db_connection_handler, success
from dashboard.repository import get_dashboard_stats, update_dashboard_stats
from event import crud as event_crud
from event.models import EventStatusUpdate
from event.ticket_types import resolve_event

from . import crud

logger = logging.getLogger(__name__)

admin = APIRouter()
protected = APIRouter(dependencies=[Depends(require_admin)])


@admin.post("/login")
async def admin_login(credentials: LoginRequest, response: Response):
    """The administrator is configured, not stored: no database lookup."""
    if not config.ADMIN_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin login is not configured"
        )
    valid_email = secrets.compare_digest(
        credentials.email.lower().encode(), config.ADMIN_EMAIL.lower().encode()
    )
    valid_password = secrets.compare_digest(
        credentials.password.encode(), config.ADMIN_PASSWORD.encode()
    )
    if not (valid_email and valid_password):
        logger.warning("Failed admin login for %s", credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = create_access_token({"id": ADMIN_SUBJECT, "email": config.ADMIN_EMAIL})
    set_token_cookie(response, token)
    return success(
        {"user": {"id": ADMIN_SUBJECT, "email": config.ADMIN_EMAIL, "role": "admin"}},
        access_token=token,
        token_type="bearer",
    )


@protected.get("/dashboard")
@db_connection_handler
async def get_dashboard(db_conn=Depends(get_postgresql_db)):
    return success({"stats": crud.get_platform_stats(db_conn)})


def _account_routes(router: APIRouter, path: str, table: str, with_stats: bool = False):
    @router.get(f"/{path}")
    @db_connection_handler
    async def list_accounts(db_conn=Depends(get_postgresql_db)):
        accounts = [AccountResponse(**row) for row in account_crud.list_accounts(db_conn, table)]
        return success({path: accounts}, results=len(accounts))

    @router.get(f"/{path}/{{account_id}}")
    @db_connection_handler
    async def get_account(account_id: int, db_conn=Depends(get_postgresql_db)):
        account = account_crud.find_by_id(db_conn, table, account_id)
        if not account:
            raise HTTPException(status_code=404, detail="Account not found")
        data = {"user": AccountResponse(**account)}
        if with_stats:
            data["stats"] = get_dashboard_stats(db_conn, account_id)
        return success(data)

    @router.patch(f"/{path}/{{account_id}}/status")
    @db_connection_handler
    async def update_account_status(
        account_id: int, body: StatusUpdate, db_conn=Depends(get_postgresql_db)
    ):
        body.validate_status()
        account = account_crud.set_status(db_conn, table, account_id, body.status)
        if not account:
            raise HTTPException(status_code=404, detail="Account not found")
        logger.info("Admin set %s %s to %s", table, account_id, body.status)
        return success({"user": AccountResponse(**account)})


_account_routes(protected, "sellers", "sellers")
_account_routes(protected, "organizers", "organizers", with_stats=True)


@protected.get("/events")
@db_connection_handler
async def get_all_events(
    event_status: Optional[str] = Query(None, alias="status"),
    db_conn=Depends(get_postgresql_db),
):
    events = crud.list_events(db_conn, event_status)
    return success({"events": events}, results=len(events))


@protected.get("/events/{event_id}")
@db_connection_handler
async def get_event(event_id: int, db_conn=Depends(get_postgresql_db)):
    event = resolve_event(db_conn, event_id, public=False)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return success({"event": event})


@protected.get("/events/{event_id}/tickets")
@db_connection_handler
async def get_event_tickets(event_id: int, db_conn=Depends(get_postgresql_db)):
    if not event_crud.get_event_owner(db_conn, event_id):
        raise HTTPException(status_code=404, detail="Event not found")
    tickets = crud.list_event_tickets(db_conn, event_id)
    return success({"tickets": tickets}, results=len(tickets))


@protected.patch("/events/{event_id}/status")
@db_connection_handler
async def update_event_status(
    event_id: int, body: EventStatusUpdate, db_conn=Depends(get_postgresql_db)
):
    body.validate_status()
    updated = event_crud.update_event_status(db_conn, event_id, body.status)
    if not updated:
        raise HTTPException(status_code=404, detail="Event not found")
    update_dashboard_stats(db_conn, updated["organizer_id"])
    return success({"event": updated})


admin.include_router(protected)
