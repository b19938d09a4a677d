import logging
from typing import Optional

from common.database import execute_query, execute_query_fetchall
from dashboard.repository import record_sales

from .constants import TicketStatus
from .models import PurchaseRequest

logger = logging.getLogger(__name__)

TICKET_COLUMNS = """
    t.id, t.ticket_number, t.event_id, t.organizer_id, t.ticket_type_id,
    t.ticket_type_name, t.customer_name, t.customer_email, t.price, t.status,
    t.scanned, t.scanned_at, t.created_at, t.updated_at
"""


def get_tickets(
    db_conn,
    organizer_id: int,
    event_id: Optional[int] = None,
    status: Optional[str] = None,
) -> list:
    query = f"""
        SELECT {TICKET_COLUMNS}, e.name AS event_name
        FROM tickets t
        LEFT JOIN events e ON e.id = t.event_id
        WHERE t.organizer_id = %s
    """
    params = [organizer_id]
    if event_id is not None:
        query += " AND t.event_id = %s"
        params.append(event_id)
    if status is not None:
        query += " AND t.status = %s"
        params.append(status)
    query += " ORDER BY t.created_at DESC"
    rows = execute_query_fetchall(db_conn.cursor(), query, tuple(params))
    return [dict(row) for row in rows]


def get_ticket(db_conn, organizer_id: int, ticket_id: int) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        f"""
        SELECT {TICKET_COLUMNS}, e.name AS event_name
        FROM tickets t
        LEFT JOIN events e ON e.id = t.event_id
        WHERE t.id = %s AND t.organizer_id = %s
        """,
        (ticket_id, organizer_id),
    )
    return dict(row) if row else None


def get_ticket_by_number(db_conn, ticket_number: str) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        f"""
        SELECT {TICKET_COLUMNS}, e.name AS event_name, e.start_date AS event_date
        FROM tickets t
        LEFT JOIN events e ON e.id = t.event_id
        WHERE t.ticket_number = %s
        """,
        (ticket_number,),
    )
    return dict(row) if row else None


def check_in_ticket(db_conn, ticket_number: str) -> Optional[dict]:
    """Mark a paid ticket as scanned. Returns None when the ticket was not
    eligible (unknown, unpaid or already scanned)."""
    row = execute_query(
        db_conn.cursor(),
        """
        UPDATE tickets
        SET scanned = TRUE, scanned_at = NOW(), updated_at = NOW()
        WHERE ticket_number = %s
          AND status = 'paid'
          AND scanned = FALSE
        RETURNING id, scanned_at
        """,
        (ticket_number,),
    )
    db_conn.commit()
    return dict(row) if row else None


def update_ticket_status(db_conn, organizer_id: int, ticket_id: int, status: str) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        """
        UPDATE tickets
        SET status = %s, updated_at = NOW()
        WHERE id = %s AND organizer_id = %s
        RETURNING *
        """,
        (status, ticket_id, organizer_id),
    )
    db_conn.commit()
    return dict(row) if row else None


def get_ticket_stats(db_conn, organizer_id: int, event_id: Optional[int] = None) -> dict:
    query = """
        SELECT status, COUNT(*) AS count, COALESCE(SUM(price), 0) AS amount
        FROM tickets
        WHERE organizer_id = %s
    """
    params = [organizer_id]
    if event_id is not None:
        query += " AND event_id = %s"
        params.append(event_id)
    query += " GROUP BY status"
    rows = execute_query_fetchall(db_conn.cursor(), query, tuple(params))

    by_status = {status: {"count": 0, "amount": 0} for status in TicketStatus.values()}
    for row in rows:
        by_status[row["status"]] = {"count": int(row["count"]), "amount": row["amount"]}
    return {
        "total_tickets": sum(entry["count"] for entry in by_status.values()),
        "tickets_sold": by_status[TicketStatus.PAID]["count"],
        "total_revenue": by_status[TicketStatus.PAID]["amount"],
        "by_status": by_status,
    }


def purchase_tickets(db_conn, event: dict, ticket_type: dict, purchase: PurchaseRequest) -> list:
    """Record one paid ticket per unit purchased, as a single order. Quantity
    caps are not enforced here; availability is reported after the fact."""
    sale = {
        "event_id": event["id"],
        "ticket_type_id": None if ticket_type["is_default"] else ticket_type["id"],
        "ticket_type": ticket_type["name"],
        "customer_name": purchase.customer_name,
        "customer_email": purchase.customer_email,
        "amount": ticket_type["price"],
        "status": TicketStatus.PAID,
    }
    tickets = record_sales(db_conn, event["organizer_id"], [sale] * purchase.quantity)
    if ticket_type["available"] < purchase.quantity:
        logger.warning(
            "Ticket type %s of event %s sold past its quantity (%s available, %s bought)",
            ticket_type["id"],
            event["id"],
            ticket_type["available"],
            purchase.quantity,
        )
    return tickets
