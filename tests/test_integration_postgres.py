"""Dashboard and ticket-type aggregates against a real PostgreSQL.

Set ``TEST_DATABASE_URL`` to a throwaway database to run these; the schema is
migrated into it and every table is truncated between tests.
"""
import os
from datetime import timedelta
from decimal import Decimal

import psycopg2
import pytest

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")
if not TEST_DATABASE_URL:
    pytest.skip("TEST_DATABASE_URL is not set", allow_module_level=True)

from common.database import DatabasePool
from common.helpers import utcnow
from dashboard.repository import record_sale, record_sales, update_dashboard_stats
from event.ticket_types import load_ticket_types
from migrate import run_migrations


@pytest.fixture(scope="module")
def db_pool():
    run_migrations(TEST_DATABASE_URL)
    pool = DatabasePool(TEST_DATABASE_URL, 1, 2)
    yield pool
    pool.close()


@pytest.fixture
def db(db_pool):
    db_conn = db_pool.connection()
    db_conn.cursor().execute(
        "TRUNCATE tickets, ticket_types, events, dashboard_stats, organizers, sellers "
        "RESTART IDENTITY CASCADE"
    )
    db_conn.commit()
    yield db_conn
    db_conn.close()


def add_organizer(db, email="organizer@example.com") -> int:
    cursor = db.cursor()
    cursor.execute(
        "INSERT INTO organizers (full_name, email, password) VALUES (%s, %s, 'x') RETURNING id",
        ("Olga Organizer", email),
    )
    db.commit()
    return cursor.fetchone()["id"]


def add_event(db, organizer_id, start, end, status="published", price="1000.00", quantity=50) -> dict:
    cursor = db.cursor()
    cursor.execute(
        """
        INSERT INTO events (organizer_id, name, start_date, end_date, status, ticket_price, ticket_quantity)
        VALUES (%s, 'Jazz Night', %s, %s, %s, %s, %s)
        RETURNING *
        """,
        (organizer_id, start, end, status, Decimal(price), quantity),
    )
    db.commit()
    return dict(cursor.fetchone())


def add_ticket_type(db, event_id, name, price, quantity) -> int:
    cursor = db.cursor()
    cursor.execute(
        "INSERT INTO ticket_types (event_id, name, price, quantity) VALUES (%s, %s, %s, %s) RETURNING id",
        (event_id, name, Decimal(price), quantity),
    )
    db.commit()
    return cursor.fetchone()["id"]


def sale(event, amount, **extra) -> dict:
    values = {
        "organizer_id": event["organizer_id"],
        "event_id": event["id"],
        "customer_name": "Ada",
        "customer_email": "ada@example.com",
        "ticket_type": "General Admission",
        "amount": Decimal(amount),
    }
    values.update(extra)
    return values


def without_timestamp(stats: dict) -> dict:
    return {key: value for key, value in stats.items() if key != "updated_at"}


@pytest.fixture
def organizer_id(db):
    return add_organizer(db)


@pytest.fixture
def upcoming(db, organizer_id):
    now = utcnow()
    return add_event(db, organizer_id, now + timedelta(days=10), now + timedelta(days=10, hours=4))


class TestDashboardStats:
    def test_sale_adds_exactly_one_ticket_and_its_amount(self, db, upcoming, organizer_id):
        before = update_dashboard_stats(db, organizer_id)
        record_sale(db, sale(upcoming, "1234.50"))
        after = update_dashboard_stats(db, organizer_id)

        assert after["total_tickets_sold"] == before["total_tickets_sold"] + 1
        assert after["total_revenue"] == before["total_revenue"] + Decimal("1234.50")
        assert after["total_attendees"] == before["total_attendees"] + 1

    def test_recompute_is_idempotent(self, db, upcoming, organizer_id):
        record_sale(db, sale(upcoming, "500.00"))
        first = update_dashboard_stats(db, organizer_id)
        second = update_dashboard_stats(db, organizer_id)

        assert without_timestamp(first) == without_timestamp(second)

    def test_time_buckets_skip_cancelled(self, db, upcoming, organizer_id):
        now = utcnow()
        add_event(db, organizer_id, now - timedelta(days=3), now - timedelta(days=2))
        add_event(db, organizer_id, now - timedelta(days=9), now - timedelta(days=8), status="draft")
        add_event(db, organizer_id, now - timedelta(hours=1), now + timedelta(hours=1))
        add_event(db, organizer_id, now + timedelta(days=1), now + timedelta(days=2), status="cancelled")

        stats = update_dashboard_stats(db, organizer_id)

        assert stats["total_events"] == 4
        assert stats["upcoming_events"] == 1
        assert stats["past_events"] == 2
        assert stats["current_events"] == 1

    def test_inverted_dates_repaired_into_one_bucket(self, db, organizer_id):
        now = utcnow()
        event = add_event(db, organizer_id, now - timedelta(hours=1), now - timedelta(hours=3))

        stats = update_dashboard_stats(db, organizer_id)

        assert stats["current_events"] == 1
        assert stats["past_events"] == 0
        cursor = db.cursor()
        cursor.execute("SELECT start_date, end_date FROM events WHERE id = %s", (event["id"],))
        row = cursor.fetchone()
        assert row["end_date"] - row["start_date"] == timedelta(hours=2)

    def test_only_paid_tickets_count(self, db, upcoming, organizer_id):
        record_sale(db, sale(upcoming, "1000.00"))
        record_sale(db, sale(upcoming, "2000.00", status="pending", customer_email="bo@example.com"))
        record_sale(db, sale(upcoming, "3000.00", status="refunded", customer_email="cy@example.com"))

        stats = update_dashboard_stats(db, organizer_id)

        assert stats["total_tickets_sold"] == 1
        assert stats["total_revenue"] == Decimal("1000.00")
        assert stats["total_attendees"] == 1

    def test_other_organizers_sales_ignored(self, db, upcoming, organizer_id):
        other = add_organizer(db, "other@example.com")
        now = utcnow()
        foreign = add_event(db, other, now + timedelta(days=1), now + timedelta(days=2))
        record_sale(db, sale(foreign, "900.00"))

        stats = update_dashboard_stats(db, organizer_id)

        assert stats["total_tickets_sold"] == 0
        assert stats["total_events"] == 1

    def test_failed_order_stores_nothing(self, db, upcoming, organizer_id):
        order = [sale(upcoming, "100.00", transaction_id="PAY-1")] * 2

        with pytest.raises(psycopg2.IntegrityError):
            record_sales(db, organizer_id, order)

        cursor = db.cursor()
        cursor.execute("SELECT COUNT(*) AS count FROM tickets")
        assert cursor.fetchone()["count"] == 0
        cursor.execute("SELECT * FROM dashboard_stats WHERE organizer_id = %s", (organizer_id,))
        assert cursor.fetchone() is None


class TestTicketTypeAggregates:
    def test_persisted_tiers_count_paid_tickets_only(self, db, upcoming):
        vip = add_ticket_type(db, upcoming["id"], "VIP", "5000.00", 20)
        add_ticket_type(db, upcoming["id"], "Regular", "1000.00", 50)
        record_sale(db, sale(upcoming, "4500.00", ticket_type_id=vip, ticket_type="VIP"))
        record_sale(db, sale(upcoming, "5000.00", ticket_type_id=vip, ticket_type="VIP", status="refunded"))

        (event,) = load_ticket_types(db, [dict(upcoming)], public=False)

        regular, vip_tier = event["ticket_types"]
        assert vip_tier["sold"] == 1
        assert vip_tier["revenue"] == Decimal("4500.00")
        assert vip_tier["available"] == 19
        assert vip_tier["total_created"] == 2
        assert regular["sold"] == 0
        assert event["tickets_sold"] == 1
        assert event["available_tickets"] == 69

    def test_event_without_tiers_gets_default_tier(self, db, upcoming):
        record_sale(db, sale(upcoming, "1000.00"))
        record_sale(db, sale(upcoming, "1000.00", status="cancelled"))

        (event,) = load_ticket_types(db, [dict(upcoming)], public=True)

        (tier,) = event["ticket_types"]
        assert tier["name"] == "General Admission"
        assert tier["sold"] == 1
        assert tier["available"] == 49
        assert event["total_revenue"] == Decimal("1000.00")
