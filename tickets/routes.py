import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from common.auth_utils import OrganizerIdentity, require_organizer
from common.database import get_postgresql_db
from common.helpers import db_connection_handler, success
from common.mailer import deliver_quietly, send_ticket_confirmation_email
from dashboard.repository import record_sale, update_dashboard_stats
from event import crud as event_crud
from event.ticket_types import resolve_event

from . import crud
from .constants import TicketStatus
from .models import PurchaseRequest, SaleCreate, TicketStatusUpdate, TicketValidation

logger = logging.getLogger(__name__)

ticket = APIRouter()
organizer_tickets = APIRouter(dependencies=[Depends(require_organizer)])


def validation_result(found: dict, already_scanned: bool = False) -> TicketValidation:
    return TicketValidation(
        valid=found["status"] == TicketStatus.PAID and not already_scanned,
        ticket_number=found["ticket_number"],
        status=found["status"],
        event_id=found.get("event_id"),
        event_name=found.get("event_name"),
        ticket_type=found.get("ticket_type_name"),
        customer_name=found.get("customer_name"),
        price=found.get("price"),
        scanned=bool(found.get("scanned")),
        already_scanned=already_scanned,
    )


# Public


@ticket.get("/validate/{ticket_number}", response_model=TicketValidation)
@db_connection_handler
async def validate_ticket(ticket_number: str, db_conn=Depends(get_postgresql_db)):
    found = crud.get_ticket_by_number(db_conn, ticket_number)
    if not found:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return validation_result(found)


@ticket.post("/validate/{ticket_number}", response_model=TicketValidation)
@db_connection_handler
async def check_in_ticket(ticket_number: str, db_conn=Depends(get_postgresql_db)):
    """Validate and admit: a paid ticket can be scanned exactly once."""
    found = crud.get_ticket_by_number(db_conn, ticket_number)
    if not found:
        raise HTTPException(status_code=404, detail="Ticket not found")
    if found["status"] != TicketStatus.PAID:
        return validation_result(found)

    checked_in = crud.check_in_ticket(db_conn, ticket_number)
    if checked_in is None:
        logger.info("Ticket %s presented again after check-in", ticket_number)
        return validation_result(found, already_scanned=True)
    found.update(checked_in, scanned=True)
    return validation_result(found)


@ticket.post("/purchase", status_code=status.HTTP_201_CREATED)
@db_connection_handler
async def purchase_tickets(
    purchase: PurchaseRequest,
    background_tasks: BackgroundTasks,
    db_conn=Depends(get_postgresql_db),
):
    event = resolve_event(db_conn, purchase.event_id, public=True)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")

    if purchase.ticket_type_id is None:
        matches = [tt for tt in event["ticket_types"] if tt["is_default"]]
    else:
        matches = [tt for tt in event["ticket_types"] if tt["id"] == purchase.ticket_type_id]
    if not matches:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This ticket type is not on sale",
        )

    tickets = crud.purchase_tickets(db_conn, event, matches[0], purchase)
    background_tasks.add_task(
        deliver_quietly,
        send_ticket_confirmation_email,
        purchase.customer_email,
        purchase.customer_name,
        {"name": event["name"], "location": event.get("location")},
        tickets,
    )
    return success({"tickets": tickets}, results=len(tickets))


# Organizer


@organizer_tickets.get("")
@db_connection_handler
async def get_tickets(
    event_id: Optional[int] = None,
    ticket_status: Optional[str] = Query(None, alias="status"),
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    tickets = crud.get_tickets(db_conn, organizer.id, event_id, ticket_status)
    return success({"tickets": tickets}, results=len(tickets))


@organizer_tickets.get("/stats")
@db_connection_handler
async def get_ticket_stats(
    event_id: Optional[int] = None,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    return success({"stats": crud.get_ticket_stats(db_conn, organizer.id, event_id)})


@organizer_tickets.get("/events/{event_id}")
@db_connection_handler
async def get_event_tickets(
    event_id: int,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    tickets = crud.get_tickets(db_conn, organizer.id, event_id)
    return success({"tickets": tickets}, results=len(tickets))


@organizer_tickets.post("/events/{event_id}", status_code=status.HTTP_201_CREATED)
@db_connection_handler
async def create_ticket(
    event_id: int,
    sale: SaleCreate,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    """Record a sale made outside the public purchase flow."""
    sale.validate_status()
    owner = event_crud.get_event_owner(db_conn, event_id)
    if not owner or owner["organizer_id"] != organizer.id:
        raise HTTPException(status_code=404, detail="Event not found")

    event = resolve_event(db_conn, event_id, public=False)
    if sale.ticket_type_id is None:
        tier = next((tt for tt in event["ticket_types"] if tt["is_default"]), None)
    else:
        tier = next((tt for tt in event["ticket_types"] if tt["id"] == sale.ticket_type_id), None)
    if tier is None:
        raise HTTPException(status_code=400, detail="Unknown ticket type for this event")

    created = record_sale(
        db_conn,
        {
            "organizer_id": organizer.id,
            "event_id": event_id,
            "transaction_id": sale.transaction_id,
            "ticket_type_id": None if tier["is_default"] else tier["id"],
            "ticket_type": tier["name"],
            "customer_name": sale.customer_name,
            "customer_email": sale.customer_email,
            "amount": sale.amount if sale.amount is not None else tier["price"],
            "status": sale.status,
        },
    )
    return success({"ticket": created})


@organizer_tickets.get("/{ticket_id}")
@db_connection_handler
async def get_ticket(
    ticket_id: int,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    found = crud.get_ticket(db_conn, organizer.id, ticket_id)
    if not found:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return success({"ticket": found})


@organizer_tickets.patch("/{ticket_id}/status")
@db_connection_handler
async def update_ticket_status(
    ticket_id: int,
    body: TicketStatusUpdate,
    organizer: OrganizerIdentity = Depends(require_organizer),
    db_conn=Depends(get_postgresql_db),
):
    body.validate_status()
    updated = crud.update_ticket_status(db_conn, organizer.id, ticket_id, body.status)
    if not updated:
        raise HTTPException(status_code=404, detail="Ticket not found")
    update_dashboard_stats(db_conn, organizer.id)
    return success({"ticket": updated})
