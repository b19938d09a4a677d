from common.database import execute_query, execute_query_fetchall

PLATFORM_STATS = """
    SELECT
        (SELECT COUNT(*) FROM sellers) AS total_sellers,
        (SELECT COUNT(*) FROM organizers) AS total_organizers,
        (SELECT COUNT(*) FROM events) AS total_events,
        (SELECT COUNT(*) FROM events WHERE status = 'published') AS published_events,
        (SELECT COUNT(*) FROM tickets WHERE status = 'paid') AS tickets_sold,
        (SELECT COALESCE(SUM(price), 0) FROM tickets WHERE status = 'paid') AS total_revenue
"""


def get_platform_stats(db_conn) -> dict:
    return dict(execute_query(db_conn.cursor(), PLATFORM_STATS))


def list_events(db_conn, status=None) -> list:
    query = """
        SELECT
            e.id, e.organizer_id, e.name, e.location, e.start_date, e.end_date,
            e.status, e.ticket_quantity, e.ticket_price, e.created_at,
            o.full_name AS organizer_name,
            o.email AS organizer_email
        FROM events e
        JOIN organizers o ON o.id = e.organizer_id
    """
    params = ()
    if status:
        query += " WHERE e.status = %s"
        params = (status,)
    query += " ORDER BY e.start_date DESC"
    return [dict(row) for row in execute_query_fetchall(db_conn.cursor(), query, params)]


def list_event_tickets(db_conn, event_id: int) -> list:
    rows = execute_query_fetchall(
        db_conn.cursor(),
        """
        SELECT id, ticket_number, ticket_type_id, ticket_type_name, customer_name,
               customer_email, price, status, scanned, created_at
        FROM tickets
        WHERE event_id = %s
        ORDER BY created_at DESC
        """,
        (event_id,),
    )
    return [dict(row) for row in rows]
