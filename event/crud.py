import logging
from decimal import Decimal
from typing import Optional

import psycopg2

from common.database import (
    execute,
    execute_query,
    execute_query_fetchall,
    log_database_error,
)

from .models import EventCreate, EventUpdate
from .ticket_types import load_ticket_types

logger = logging.getLogger(__name__)


def create_event(db_conn, organizer_id: int, event: EventCreate) -> dict:
    """Insert the event and its ticket types in one transaction."""
    ticket_quantity, ticket_price = event.legacy_ticket_fields()
    cursor = db_conn.cursor()
    try:
        created = execute_query(
            cursor,
            """
            INSERT INTO events (
                organizer_id, name, description, location, image_url,
                ticket_quantity, ticket_price, start_date, end_date, status,
                created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING *
            """,
            (
                organizer_id,
                event.name,
                event.description,
                event.location,
                event.image_data_url,
                ticket_quantity,
                ticket_price,
                event.start_date,
                event.end_date,
                event.status,
            ),
        )
        for ticket_type in event.ticket_types:
            execute(
                cursor,
                """
                INSERT INTO ticket_types (
                    event_id, name, description, price, quantity,
                    sales_start_date, sales_end_date, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
                """,
                (
                    created["id"],
                    ticket_type.name,
                    ticket_type.description or "",
                    ticket_type.price,
                    ticket_type.quantity,
                    ticket_type.sales_start_date,
                    ticket_type.sales_end_date,
                ),
            )
        db_conn.commit()
    except psycopg2.Error as e:
        db_conn.rollback()
        log_database_error("Create event failed", e)
        raise
    logger.info(
        "Event %s created by organizer %s with %d ticket type(s)",
        created["id"],
        organizer_id,
        len(event.ticket_types),
    )
    return dict(created)


def get_event_owner(db_conn, event_id: int) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        "SELECT id, organizer_id FROM events WHERE id = %s",
        (event_id,),
    )
    return dict(row) if row else None


def get_organizer_events(db_conn, organizer_id: int) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        "SELECT * FROM events WHERE organizer_id = %s ORDER BY created_at DESC",
        (organizer_id,),
    )
    return [dict(row) for row in rows]


def get_upcoming_by_organizer(db_conn, organizer_id: int, limit: int = 10) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        """
        SELECT e.*, o.full_name AS organizer_name
        FROM events e
        JOIN organizers o ON e.organizer_id = o.id
        WHERE e.organizer_id = %s
          AND e.end_date > NOW()
        ORDER BY e.start_date ASC
        LIMIT %s
        """,
        (organizer_id, limit),
    )
    return [dict(row) for row in rows]


def get_past_by_organizer(db_conn, organizer_id: int, limit: int = 10) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        """
        SELECT e.*, o.full_name AS organizer_name
        FROM events e
        JOIN organizers o ON e.organizer_id = o.id
        WHERE e.organizer_id = %s
          AND e.end_date <= NOW()
        ORDER BY e.end_date DESC
        LIMIT %s
        """,
        (organizer_id, limit),
    )
    return [dict(row) for row in rows]


def get_dashboard_events(db_conn, organizer_id: int) -> list:
    """Event cards with per-event totals, taken from the same tier figures as
    the event detail view (default tier included)."""
    rows = execute_query_fetchall(
        db_conn.cursor(),
        "SELECT * FROM events WHERE organizer_id = %s ORDER BY start_date DESC",
        (organizer_id,),
    )
    events = load_ticket_types(db_conn, [dict(row) for row in rows], public=False)
    for event in events:
        tiers = event["ticket_types"]
        event["stats"] = {
            "total_tickets": sum(tier["quantity"] for tier in tiers),
            "available_tickets": event["available_tickets"],
            "sold_tickets": event["tickets_sold"],
            "potential_revenue": sum(
                (tier["price"] * tier["quantity"] for tier in tiers), Decimal("0")
            ),
            "earned_revenue": event["total_revenue"],
        }
    return events


def update_event(db_conn, event_id: int, updates: EventUpdate) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        """
        UPDATE events
        SET name = COALESCE(%s, name),
            description = COALESCE(%s, description),
            image_url = COALESCE(%s, image_url),
            location = COALESCE(%s, location),
            ticket_quantity = COALESCE(%s, ticket_quantity),
            ticket_price = COALESCE(%s, ticket_price),
            start_date = COALESCE(%s, start_date),
            end_date = COALESCE(%s, end_date),
            status = COALESCE(%s, status),
            updated_at = CURRENT_TIMESTAMP
        WHERE id = %s
        RETURNING *
        """,
        (
            updates.name,
            updates.description,
            updates.image_data_url,
            updates.location,
            updates.ticket_quantity,
            updates.ticket_price,
            updates.start_date,
            updates.end_date,
            updates.status,
            event_id,
        ),
    )
    db_conn.commit()
    return dict(row) if row else None


def update_event_status(db_conn, event_id: int, status: str) -> Optional[dict]:
    row = execute_query(
        db_conn.cursor(),
        """
        UPDATE events
        SET status = %s, updated_at = CURRENT_TIMESTAMP
        WHERE id = %s
        RETURNING id, organizer_id, status
        """,
        (status, event_id),
    )
    db_conn.commit()
    return dict(row) if row else None


def delete_event(db_conn, event_id: int, organizer_id: int) -> bool:
    """Remove the event and its ticket types; sold tickets are kept."""
    cursor = db_conn.cursor()
    try:
        execute(cursor, "DELETE FROM ticket_types WHERE event_id = %s", (event_id,))
        deleted = execute_query(
            cursor,
            "DELETE FROM events WHERE id = %s AND organizer_id = %s RETURNING id",
            (event_id, organizer_id),
        )
        db_conn.commit()
    except psycopg2.Error as e:
        db_conn.rollback()
        log_database_error("Delete event failed", e)
        raise
    return deleted is not None
