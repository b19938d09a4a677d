from fastapi import APIRouter, Depends, Query

from common.auth_utils import OrganizerIdentity, require_organizer
from common.database import get_postgresql_db
from common.helpers import db_connection_handler, success

from . import repository

dashboard = APIRouter(dependencies=[Depends(require_organizer)])


@dashboard.get("")
@db_connection_handler
async def get_dashboard(
    upcoming_limit: int = Query(3, ge=1, le=50),
    sales_limit: int = Query(4, ge=1, le=50),
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    """Stats, the next few events and the latest sales for the organizer."""
    stats = repository.get_dashboard_stats(db_conn, organizer.id)
    if stats is None:
        stats = repository.update_dashboard_stats(db_conn, organizer.id)
    return success(
        {
            "stats": stats,
            "upcoming_events": repository.get_upcoming_events(db_conn, organizer.id, upcoming_limit),
            "recent_sales": repository.get_recent_sales(db_conn, organizer.id, sales_limit),
        }
    )


@dashboard.post("/refresh")
@db_connection_handler
async def refresh_dashboard(
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    return success({"stats": repository.update_dashboard_stats(db_conn, organizer.id)})
