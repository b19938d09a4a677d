import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from common.auth_utils import OrganizerIdentity, require_organizer
from common.database import get_postgresql_db
from common.helpers import db_connection_handler, success
from dashboard.repository import add_recent_event, update_dashboard_stats

from . import crud, models, ticket_types
from .constants import DEFAULT_UPCOMING_LIMIT

logger = logging.getLogger(__name__)

public_events = APIRouter()
organizer_events = APIRouter(dependencies=[Depends(require_organizer)])


def public_event_id(event_id: str) -> int:
    """Reject non-numeric ids before any database work."""
    if not (event_id.isascii() and event_id.isdigit()):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return int(event_id)


def get_owned_event(db_conn, event_id: int, organizer: OrganizerIdentity) -> dict:
    owner = crud.get_event_owner(db_conn, event_id)
    if not owner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    if owner["organizer_id"] != organizer.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this event",
        )
    return owner


# Public


@public_events.get("/upcoming")
@db_connection_handler
async def get_upcoming_events(
    limit: int = Query(DEFAULT_UPCOMING_LIMIT, ge=1, le=100),
    db_conn=Depends(get_postgresql_db),
):
    """Published events that have not ended, with their purchasable tiers."""
    events = ticket_types.upcoming_events(db_conn, limit)
    return success({"events": events}, results=len(events))


@public_events.get("/{event_id}")
@db_connection_handler
async def get_public_event(
    event_id: int = Depends(public_event_id),
    db_conn=Depends(get_postgresql_db),
):
    event = ticket_types.resolve_event(db_conn, event_id, public=True)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return success({"event": event})


@public_events.get("/{event_id}/ticket-types")
@db_connection_handler
async def get_event_ticket_types(
    event_id: int = Depends(public_event_id),
    db_conn=Depends(get_postgresql_db),
):
    types = ticket_types.list_ticket_types(db_conn, event_id, public=True)
    if types is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return success({"ticket_types": types}, results=len(types))


# Organizer


@organizer_events.post("", status_code=status.HTTP_201_CREATED)
@db_connection_handler
async def create_event(
    event: models.EventCreate,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    """Create a new event, with explicit ticket types or legacy price/quantity."""
    event.validate_event()
    created = crud.create_event(db_conn, organizer.id, event)
    add_recent_event(db_conn, organizer.id)
    return success({"event": created})


@organizer_events.get("")
@db_connection_handler
async def get_organizer_events(
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    events = crud.get_organizer_events(db_conn, organizer.id)
    return success({"events": events}, results=len(events))


@organizer_events.get("/dashboard")
@db_connection_handler
async def get_dashboard_events(
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    events = crud.get_dashboard_events(db_conn, organizer.id)
    return success({"events": events}, results=len(events))


@organizer_events.get("/upcoming")
@db_connection_handler
async def get_upcoming_organizer_events(
    limit: int = Query(10, ge=1, le=100),
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    events = crud.get_upcoming_by_organizer(db_conn, organizer.id, limit)
    return success({"events": events}, results=len(events))


@organizer_events.get("/past")
@db_connection_handler
async def get_past_organizer_events(
    limit: int = Query(10, ge=1, le=100),
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    events = crud.get_past_by_organizer(db_conn, organizer.id, limit)
    return success({"events": events}, results=len(events))


@organizer_events.get("/{event_id}")
@db_connection_handler
async def get_event(
    event_id: int,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    """Organizer view: every tier regardless of sales window, with total_created."""
    get_owned_event(db_conn, event_id, organizer)
    event = ticket_types.resolve_event(db_conn, event_id, public=False)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return success({"event": event})


@organizer_events.put("/{event_id}")
@db_connection_handler
async def update_event(
    event_id: int,
    updates: models.EventUpdate,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    updates.validate_update()
    get_owned_event(db_conn, event_id, organizer)
    updated = crud.update_event(db_conn, event_id, updates)
    if not updated:
        raise HTTPException(status_code=404, detail="Event not found")
    update_dashboard_stats(db_conn, organizer.id)
    return success({"event": updated})


@organizer_events.delete("/{event_id}")
@db_connection_handler
async def delete_event(
    event_id: int,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    get_owned_event(db_conn, event_id, organizer)
    if not crud.delete_event(db_conn, event_id, organizer.id):
        raise HTTPException(status_code=404, detail="Event not found")
    update_dashboard_stats(db_conn, organizer.id)
    return {"status": "success", "message": "Event deleted successfully"}


@organizer_events.patch("/{event_id}/status")
@db_connection_handler
async def update_event_status(
    event_id: int,
    body: models.EventStatusUpdate,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    body.validate_status()
    get_owned_event(db_conn, event_id, organizer)
    updated = crud.update_event_status(db_conn, event_id, body.status)
    if not updated:
        raise HTTPException(status_code=404, detail="Event not found")
    update_dashboard_stats(db_conn, organizer.id)
    logger.info("Event %s moved to %s by organizer %s", event_id, body.status, organizer.id)
    return success({"event": updated})
