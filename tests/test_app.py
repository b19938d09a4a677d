import psycopg2
import pytest

from main import app


class FakePool:
    def __init__(self, error=None):
        self.error = error

    def check_connection(self):
        if self.error:
            raise self.error


@pytest.fixture
def pool(monkeypatch):
    def install(error=None):
        monkeypatch.setattr(app.state, "db_pool", FakePool(error), raising=False)

    return install


class TestHealth:
    def test_healthy(self, client, pool):
        pool()
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    def test_database_down(self, client, pool):
        pool(psycopg2.OperationalError("could not connect"))
        response = client.get("/health")
        assert response.status_code == 503


class TestRequestId:
    def test_generated(self, client):
        response = client.get("/api/events/public/abc")
        assert len(response.headers["X-Request-ID"]) == 32

    def test_propagated(self, client):
        response = client.get("/api/events/public/abc", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
