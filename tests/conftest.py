import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ADMIN_EMAIL", "admin@byblos.com")
os.environ.setdefault("ADMIN_PASSWORD", "admin-password")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ["REDIS_HOST"] = ""
for name in ("EMAIL_HOST", "EMAIL_USERNAME", "EMAIL_PASSWORD", "EMAIL_FROM_EMAIL"):
    os.environ[name] = ""

import pytest
from fastapi.testclient import TestClient
from psycopg2 import sql

from common.auth_utils import create_access_token
from common.database import get_postgresql_db

STATS_ROW = {
    "organizer_id": 7,
    "total_events": 0,
    "upcoming_events": 0,
    "past_events": 0,
    "current_events": 0,
    "total_tickets_sold": 0,
    "total_revenue": 0,
    "total_attendees": 0,
    "updated_at": None,
}


def render(query) -> str:
    if isinstance(query, str):
        return query
    if isinstance(query, sql.Composed):
        return "".join(render(part) for part in query.seq)
    if isinstance(query, sql.SQL):
        return query.string
    if isinstance(query, sql.Identifier):
        return ".".join(query.strings)
    return str(query)


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.result = None
        self.rowcount = 0

    def execute(self, query, params=None):
        text = " ".join(render(query).split())
        self.connection.executed.append((text, params))
        result = self.connection.result_for(text, params)
        if isinstance(result, Exception):
            raise result
        self.result = result
        if isinstance(result, int):
            self.rowcount = result
        elif isinstance(result, list):
            self.rowcount = len(result)
        else:
            self.rowcount = 0 if result is None else 1

    def fetchone(self):
        if isinstance(self.result, list):
            return self.result[0] if self.result else None
        if isinstance(self.result, dict):
            return self.result
        return None

    def fetchall(self):
        if isinstance(self.result, list):
            return self.result
        if isinstance(self.result, dict):
            return [self.result]
        return []

    def close(self):
        pass


class FakeConnection:
    """Answers queries by substring; unmatched queries return no rows."""

    def __init__(self):
        self.rules = []
        self.executed = []
        self.commits = 0
        self.rollbacks = 0

    def on(self, fragment, *results):
        """Register results for queries containing ``fragment``. Several
        results are consumed in order, the last one repeats. A callable
        result receives the query params."""
        self.rules.append([fragment, list(results)])
        return self

    def result_for(self, text, params):
        for rule in self.rules:
            fragment, results = rule
            if fragment in text:
                result = results.pop(0) if len(results) > 1 else results[0]
                if callable(result):
                    return result(params)
                return result
        return None

    def queries(self, fragment=""):
        return [text for text, _ in self.executed if fragment in text]

    def params_for(self, fragment):
        return [params for text, params in self.executed if fragment in text]

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        pass


@pytest.fixture
def fake_db():
    connection = FakeConnection()
    connection.on("INSERT INTO dashboard_stats", lambda params: dict(STATS_ROW, organizer_id=params["organizer_id"]))
    return connection


@pytest.fixture
def client(fake_db):
    from main import app

    def override_db():
        yield fake_db

    app.dependency_overrides[get_postgresql_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def bearer(account_id, email="someone@example.com") -> dict:
    token = create_access_token({"id": account_id, "email": email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def organizer_headers(fake_db):
    fake_db.on(
        "AS name FROM organizers",
        {"id": 7, "email": "organizer@example.com", "name": "Olga Organizer"},
    )
    return bearer(7, "organizer@example.com")


@pytest.fixture
def seller_headers(fake_db):
    fake_db.on(
        "AS name FROM sellers",
        {"id": 9, "email": "seller@example.com", "name": "Sam Seller"},
    )
    return bearer(9, "seller@example.com")


@pytest.fixture
def admin_headers():
    return bearer("admin", "admin@byblos.com")
