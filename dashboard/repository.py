"""Per-organizer dashboard statistics.

``dashboard_stats`` is a materialized view recomputed on write: every sale
and every event mutation rebuilds the organizer's row from the ``events`` and
``tickets`` tables. The row is consistent with those tables as soon as the
mutating transaction commits, and stale only if a write bypasses this module.
"""
import logging
import secrets
import time

import psycopg2

from common.database import (
    execute,
    execute_query,
    execute_query_fetchall,
    log_database_error,
)
from tickets.constants import TICKET_NUMBER_PREFIX, TicketStatus

logger = logging.getLogger(__name__)

REPAIR_EVENT_DATES = """
    UPDATE events
    SET end_date = start_date + INTERVAL '2 hours'
    WHERE organizer_id = %(organizer_id)s
      AND (end_date IS NULL OR end_date <= start_date)
"""

UPSERT_DASHBOARD_STATS = """
    WITH event_counts AS (
        SELECT
            COUNT(*) AS total_events,
            COUNT(*) FILTER (WHERE start_date > NOW()) AS upcoming_events,
            COUNT(*) FILTER (WHERE end_date < NOW()) AS past_events,
            COUNT(*) FILTER (WHERE start_date <= NOW() AND end_date >= NOW()) AS current_events
        FROM events
        WHERE organizer_id = %(organizer_id)s
          AND status != 'cancelled'
    ),
    ticket_stats AS (
        SELECT
            COUNT(*) AS total_tickets_sold,
            COALESCE(SUM(price), 0) AS total_revenue,
            COUNT(DISTINCT customer_email) AS total_attendees
        FROM tickets
        WHERE organizer_id = %(organizer_id)s
          AND status = 'paid'
    )
    INSERT INTO dashboard_stats (
        organizer_id,
        total_events,
        upcoming_events,
        past_events,
        current_events,
        total_tickets_sold,
        total_revenue,
        total_attendees,
        updated_at
    )
    SELECT
        %(organizer_id)s,
        COALESCE(ec.total_events, 0),
        COALESCE(ec.upcoming_events, 0),
        COALESCE(ec.past_events, 0),
        COALESCE(ec.current_events, 0),
        COALESCE(ts.total_tickets_sold, 0),
        COALESCE(ts.total_revenue, 0),
        COALESCE(ts.total_attendees, 0),
        NOW()
    FROM (SELECT 1) AS dummy
    LEFT JOIN event_counts ec ON true
    LEFT JOIN ticket_stats ts ON true
    ON CONFLICT (organizer_id)
    DO UPDATE SET
        total_events = EXCLUDED.total_events,
        upcoming_events = EXCLUDED.upcoming_events,
        past_events = EXCLUDED.past_events,
        current_events = EXCLUDED.current_events,
        total_tickets_sold = EXCLUDED.total_tickets_sold,
        total_revenue = EXCLUDED.total_revenue,
        total_attendees = EXCLUDED.total_attendees,
        updated_at = NOW()
    RETURNING *
"""

INSERT_SALE = """
    INSERT INTO tickets (
        ticket_number,
        event_id,
        organizer_id,
        ticket_type_id,
        ticket_type_name,
        customer_name,
        customer_email,
        price,
        status,
        created_at,
        updated_at
    ) VALUES (
        %(ticket_number)s,
        %(event_id)s,
        %(organizer_id)s,
        %(ticket_type_id)s,
        %(ticket_type_name)s,
        %(customer_name)s,
        %(customer_email)s,
        %(price)s,
        %(status)s,
        NOW(),
        NOW()
    )
    RETURNING *
"""


def get_dashboard_stats(db_conn, organizer_id: int):
    row = execute_query(
        db_conn.cursor(),
        "SELECT * FROM dashboard_stats WHERE organizer_id = %s",
        (organizer_id,),
    )
    return dict(row) if row else None


def get_upcoming_events(db_conn, organizer_id: int, limit: int = 3) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        """
        SELECT
            e.id,
            e.name,
            e.location,
            e.start_date,
            e.end_date,
            e.status,
            o.full_name AS organizer_name,
            o.email AS organizer_email,
            (SELECT COUNT(*) FROM tickets t
             WHERE t.event_id = e.id AND t.status = 'paid') AS tickets_sold
        FROM events e
        JOIN organizers o ON e.organizer_id = o.id
        WHERE e.organizer_id = %s
          AND e.status = 'published'
          AND e.end_date > NOW()
        ORDER BY e.start_date ASC
        LIMIT %s
        """,
        (organizer_id, limit),
    )
    return [dict(row) for row in rows]


def get_recent_sales(db_conn, organizer_id: int, limit: int = 4) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        """
        SELECT
            t.id,
            t.ticket_number AS transaction_id,
            t.customer_name,
            t.customer_email,
            t.event_id,
            t.ticket_type_name AS ticket_type,
            t.price AS amount,
            t.status,
            t.created_at,
            e.name AS event_title,
            e.start_date AS event_date,
            1 AS quantity
        FROM tickets t
        LEFT JOIN events e ON t.event_id = e.id
        WHERE t.organizer_id = %s
        ORDER BY t.created_at DESC
        LIMIT %s
        """,
        (organizer_id, limit),
    )
    return [dict(row) for row in rows]


def update_dashboard_stats(db_conn, organizer_id: int, commit: bool = True) -> dict:
    """Recompute the organizer's row from scratch and upsert it.

    Events with an empty or inverted date range are repaired first by giving
    them a two hour duration, so they land in exactly one time bucket.
    """
    cursor = db_conn.cursor()
    try:
        repaired = execute(cursor, REPAIR_EVENT_DATES, {"organizer_id": organizer_id})
        if repaired:
            logger.warning(
                "Repaired %s event(s) with invalid date range for organizer %s",
                repaired,
                organizer_id,
            )
        stats = execute_query(cursor, UPSERT_DASHBOARD_STATS, {"organizer_id": organizer_id})
        if commit:
            db_conn.commit()
    except psycopg2.Error as e:
        if commit:
            db_conn.rollback()
            log_database_error(f"Error updating dashboard stats for organizer {organizer_id}", e)
        raise
    return dict(stats)


def add_recent_event(db_conn, organizer_id: int) -> dict:
    return update_dashboard_stats(db_conn, organizer_id)


def generate_ticket_number() -> str:
    return f"{TICKET_NUMBER_PREFIX}-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def sale_params(sale: dict) -> dict:
    """Row values for one ticket.

    ``sale`` carries organizer_id, event_id, customer_name, customer_email,
    amount and optionally transaction_id, ticket_type_id, ticket_type and
    status (defaults to paid).
    """
    return {
        "ticket_number": sale.get("transaction_id") or generate_ticket_number(),
        "event_id": sale["event_id"],
        "organizer_id": sale["organizer_id"],
        "ticket_type_id": sale.get("ticket_type_id"),
        "ticket_type_name": sale.get("ticket_type"),
        "customer_name": sale.get("customer_name"),
        "customer_email": sale.get("customer_email"),
        "price": sale["amount"],
        "status": sale.get("status") or TicketStatus.PAID,
    }


def record_sales(db_conn, organizer_id: int, sales: list) -> list:
    """Insert every ticket of one order and rebuild the owner's stats once,
    all in a single transaction. Either every ticket is stored or none is."""
    tickets = []
    cursor = db_conn.cursor()
    try:
        for sale in sales:
            params = sale_params(dict(sale, organizer_id=organizer_id))
            tickets.append(dict(execute_query(cursor, INSERT_SALE, params)))
        update_dashboard_stats(db_conn, organizer_id, commit=False)
        db_conn.commit()
    except psycopg2.Error as e:
        db_conn.rollback()
        log_database_error(f"Error recording {len(sales)} sale(s) for organizer {organizer_id}", e)
        raise
    logger.info(
        "Recorded %s: event %s (organizer %s)",
        ", ".join(ticket["ticket_number"] for ticket in tickets),
        tickets[0]["event_id"] if tickets else None,
        organizer_id,
    )
    return tickets


def record_sale(db_conn, sale: dict) -> dict:
    """Insert one ticket and rebuild the owner's stats in the same transaction."""
    return record_sales(db_conn, sale["organizer_id"], [sale])[0]
