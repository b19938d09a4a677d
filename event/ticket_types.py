"""Ticket-type availability.

Every view of an event's tiers goes through :func:`load_ticket_types`, which
computes sold/available/revenue figures for any number of events with one
aggregate query, then synthesizes the "General Admission" tier for events
that never defined their own.
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional

from common.database import execute_query, execute_query_fetchall
from common.helpers import as_aware, to_int, utcnow
from event.constants import (
    DEFAULT_TICKET_TYPE_DESCRIPTION,
    DEFAULT_TICKET_TYPE_ID,
    DEFAULT_TICKET_TYPE_NAME,
    EventStatus,
)

logger = logging.getLogger(__name__)

TICKET_TYPE_AGGREGATES = """
    WITH type_counts AS (
        SELECT
            t.ticket_type_id,
            t.event_id,
            COUNT(*) FILTER (WHERE t.status = 'paid') AS sold,
            COALESCE(SUM(t.price) FILTER (WHERE t.status = 'paid'), 0) AS revenue,
            COUNT(*) AS total_created
        FROM tickets t
        WHERE t.event_id = ANY(%(event_ids)s)
          AND t.ticket_type_id IS NOT NULL
        GROUP BY t.ticket_type_id, t.event_id
    )
    SELECT
        tt.id,
        tt.event_id,
        tt.name,
        tt.description,
        tt.price,
        tt.quantity,
        tt.sales_start_date,
        tt.sales_end_date,
        COALESCE(tc.sold, 0) AS sold,
        COALESCE(tc.revenue, 0) AS revenue,
        COALESCE(tc.total_created, 0) AS total_created
    FROM ticket_types tt
    LEFT JOIN type_counts tc
        ON tc.ticket_type_id = tt.id AND tc.event_id = tt.event_id
    WHERE tt.event_id = ANY(%(event_ids)s)
    ORDER BY tt.event_id, tt.price ASC, tt.id ASC
"""

EVENT_SALES_AGGREGATES = """
    SELECT
        event_id,
        COUNT(*) FILTER (WHERE status = 'paid') AS sold,
        COALESCE(SUM(price) FILTER (WHERE status = 'paid'), 0) AS revenue,
        COUNT(*) AS total_created
    FROM tickets
    WHERE event_id = ANY(%(event_ids)s)
    GROUP BY event_id
"""


def in_sales_window(ticket_type: dict, now=None) -> bool:
    """A missing bound leaves that side of the window open."""
    now = now or utcnow()
    start = as_aware(ticket_type.get("sales_start_date"))
    end = as_aware(ticket_type.get("sales_end_date"))
    if start is not None and start > now:
        return False
    if end is not None and end < now:
        return False
    return True


def available(quantity, sold) -> int:
    return max(0, to_int(quantity) - to_int(sold))


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def shape_ticket_type(row: dict, organizer_view: bool = False) -> dict:
    quantity = to_int(row.get("quantity"))
    sold = to_int(row.get("sold"))
    ticket_type = {
        "id": row["id"],
        "event_id": row.get("event_id"),
        "name": row.get("name"),
        "description": row.get("description"),
        "price": _money(row.get("price")),
        "quantity": quantity,
        "sold": sold,
        "available": available(quantity, sold),
        "revenue": _money(row.get("revenue")),
        "sales_start_date": row.get("sales_start_date"),
        "sales_end_date": row.get("sales_end_date"),
        "is_default": False,
    }
    if organizer_view:
        ticket_type["total_created"] = to_int(row.get("total_created"))
    return ticket_type


def default_ticket_type(event: dict, sales: Optional[dict] = None, organizer_view: bool = False) -> dict:
    """Synthesize the single tier of an event that has no persisted ticket
    types, from its legacy price and quantity. Never stored."""
    sales = sales or {}
    quantity = to_int(event.get("ticket_quantity"))
    sold = to_int(sales.get("sold"))
    ticket_type = {
        "id": DEFAULT_TICKET_TYPE_ID,
        "event_id": event.get("id"),
        "name": DEFAULT_TICKET_TYPE_NAME,
        "description": DEFAULT_TICKET_TYPE_DESCRIPTION,
        "price": _money(event.get("ticket_price")),
        "quantity": quantity,
        "sold": sold,
        "available": available(quantity, sold),
        "revenue": _money(sales.get("revenue")),
        "sales_start_date": None,
        "sales_end_date": None,
        "is_default": True,
    }
    if organizer_view:
        ticket_type["total_created"] = to_int(sales.get("total_created"))
    return ticket_type


def summarize(ticket_types: Iterable[dict]) -> dict:
    totals = {"tickets_sold": 0, "available_tickets": 0, "total_revenue": Decimal("0")}
    for ticket_type in ticket_types:
        totals["tickets_sold"] += ticket_type["sold"]
        totals["available_tickets"] += ticket_type["available"]
        totals["total_revenue"] += ticket_type["revenue"]
    return totals


def attach_ticket_types(
    event: dict,
    type_rows: list,
    sales: Optional[dict] = None,
    public: bool = False,
    now=None,
) -> dict:
    """Embed the tiers and their totals in ``event``.

    Public views drop tiers outside their sales window; the default tier is
    only synthesized when the event has no persisted tiers at all.
    """
    organizer_view = not public
    if type_rows:
        ticket_types = [shape_ticket_type(row, organizer_view) for row in type_rows]
        if public:
            now = now or utcnow()
            ticket_types = [tt for tt in ticket_types if in_sales_window(tt, now)]
        event["ticket_quantity"] = sum(tt["quantity"] for tt in ticket_types)
    else:
        ticket_types = [default_ticket_type(event, sales, organizer_view)]

    ticket_types.sort(key=lambda tt: tt["price"])
    event["ticket_types"] = ticket_types
    event.update(summarize(ticket_types))
    return event


def fetch_ticket_type_rows(db_conn, event_ids: list) -> dict:
    rows = execute_query_fetchall(
        db_conn.cursor(), TICKET_TYPE_AGGREGATES, {"event_ids": list(event_ids)}
    )
    by_event = {}
    for row in rows:
        by_event.setdefault(row["event_id"], []).append(dict(row))
    return by_event


def fetch_event_sales(db_conn, event_ids: list) -> dict:
    rows = execute_query_fetchall(
        db_conn.cursor(), EVENT_SALES_AGGREGATES, {"event_ids": list(event_ids)}
    )
    return {row["event_id"]: dict(row) for row in rows}


def load_ticket_types(db_conn, events: list, public: bool = False, now=None) -> list:
    """Batch-resolve tiers for ``events`` (dicts carrying at least ``id``,
    ``ticket_price`` and ``ticket_quantity``)."""
    if not events:
        return []
    event_ids = [event["id"] for event in events]
    rows_by_event = fetch_ticket_type_rows(db_conn, event_ids)

    untyped = [event_id for event_id in event_ids if event_id not in rows_by_event]
    sales_by_event = fetch_event_sales(db_conn, untyped) if untyped else {}

    return [
        attach_ticket_types(
            event,
            rows_by_event.get(event["id"], []),
            sales_by_event.get(event["id"]),
            public=public,
            now=now,
        )
        for event in events
    ]


def resolve_event(db_conn, event_id: int, public: bool = False) -> Optional[dict]:
    """One event with its tiers, or None when it does not exist (or, for
    public views, is not published)."""
    query = "SELECT e.* FROM events e WHERE e.id = %s"
    params = [event_id]
    if public:
        query += " AND e.status = %s"
        params.append(EventStatus.PUBLISHED)
    row = execute_query(db_conn.cursor(), query, tuple(params))
    if not row:
        return None
    return load_ticket_types(db_conn, [dict(row)], public=public)[0]


def list_ticket_types(db_conn, event_id: int, public: bool = False) -> Optional[list]:
    event = resolve_event(db_conn, event_id, public=public)
    if event is None:
        return None
    return event["ticket_types"]


def upcoming_events(db_conn, limit: int = 10) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        """
        SELECT e.* FROM events e
        WHERE e.status = %s
          AND e.end_date >= NOW()
        ORDER BY e.start_date ASC
        LIMIT %s
        """,
        (EventStatus.PUBLISHED, limit),
    )
    events = load_ticket_types(db_conn, [dict(row) for row in rows], public=True)
    logger.debug("Resolved %d upcoming events", len(events))
    return events
