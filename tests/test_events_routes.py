from decimal import Decimal

EVENT = {
    "id": 5,
    "organizer_id": 7,
    "name": "Jazz Night",
    "description": "Live jazz",
    "location": "Nairobi",
    "image_url": None,
    "start_date": "2030-05-01T18:00:00+00:00",
    "end_date": "2030-05-01T22:00:00+00:00",
    "status": "published",
    "ticket_price": Decimal("1000.00"),
    "ticket_quantity": 50,
}

NEW_EVENT = {
    "name": "Jazz Night",
    "description": "Live jazz",
    "location": "Nairobi",
    "start_date": "2030-05-01T18:00:00Z",
    "end_date": "2030-05-01T22:00:00Z",
}


class TestPublicEvents:
    def test_non_numeric_id_never_queries(self, client, fake_db):
        response = client.get("/api/events/public/abc")
        assert response.status_code == 404
        assert fake_db.executed == []

    def test_unicode_digit_id_never_queries(self, client, fake_db):
        response = client.get("/api/events/public/²")
        assert response.status_code == 404
        assert fake_db.executed == []

    def test_non_numeric_id_ticket_types(self, client, fake_db):
        response = client.get("/api/events/public/abc/ticket-types")
        assert response.status_code == 404
        assert fake_db.executed == []

    def test_unpublished_or_missing(self, client):
        response = client.get("/api/events/public/5")
        assert response.status_code == 404

    def test_event_with_sales_on_persisted_tier(self, client, fake_db):
        fake_db.on("FROM events e WHERE e.id", dict(EVENT))
        fake_db.on(
            "FROM ticket_types tt",
            [
                {
                    "id": 11, "event_id": 5, "name": "Regular", "description": "",
                    "price": Decimal("1000.00"), "quantity": 50, "sold": 3,
                    "revenue": Decimal("3000.00"), "total_created": 3,
                    "sales_start_date": None, "sales_end_date": None,
                }
            ],
        )
        response = client.get("/api/events/public/5")

        assert response.status_code == 200
        event = response.json()["data"]["event"]
        (tier,) = event["ticket_types"]
        assert tier["sold"] == 3
        assert tier["available"] == 47
        assert float(tier["revenue"]) == 3000
        assert "total_created" not in tier

    def test_event_without_tiers_gets_general_admission(self, client, fake_db):
        fake_db.on("FROM events e WHERE e.id", dict(EVENT))
        response = client.get("/api/events/public/5/ticket-types")

        assert response.status_code == 200
        body = response.json()
        assert body["results"] == 1
        assert body["data"]["ticket_types"][0]["name"] == "General Admission"
        assert body["data"]["ticket_types"][0]["is_default"] is True

    def test_upcoming(self, client, fake_db):
        fake_db.on("AND e.end_date >= NOW()", [dict(EVENT), dict(EVENT, id=6)])
        response = client.get("/api/events/public/upcoming?limit=5")

        assert response.status_code == 200
        assert response.json()["results"] == 2
        assert fake_db.params_for("AND e.end_date >= NOW()") == [("published", 5)]


class TestOrganizerEvents:
    def test_requires_organizer(self, client, seller_headers):
        response = client.get("/api/organizers/events", headers=seller_headers)
        assert response.status_code == 403

    def test_create_with_ticket_types(self, client, fake_db, organizer_headers):
        fake_db.on("INSERT INTO events", lambda params: dict(EVENT, id=21, status=params[9]))
        payload = dict(
            NEW_EVENT,
            ticketTypes=[
                {"name": "VIP", "price": 5000, "quantity": 20, "salesEndDate": "2030-04-30T00:00:00Z"},
                {"name": "Regular", "price": 1000, "quantity": 100},
            ],
        )
        response = client.post("/api/organizers/events", json=payload, headers=organizer_headers)

        assert response.status_code == 201
        assert response.json()["data"]["event"]["id"] == 21
        assert len(fake_db.queries("INSERT INTO ticket_types")) == 2
        # legacy fields carry zero quantity and the cheapest tier's price
        event_params = fake_db.params_for("INSERT INTO events")[0]
        assert event_params[5] == 0
        assert event_params[6] == Decimal(1000)
        assert len(fake_db.queries("INSERT INTO dashboard_stats")) == 1

    def test_create_with_legacy_price(self, client, fake_db, organizer_headers):
        fake_db.on("INSERT INTO events", dict(EVENT, id=22))
        payload = dict(NEW_EVENT, ticket_price=1500, ticket_quantity=80)
        response = client.post("/api/organizers/events", json=payload, headers=organizer_headers)

        assert response.status_code == 201
        assert fake_db.queries("INSERT INTO ticket_types") == []

    def test_create_rejects_inverted_dates(self, client, fake_db, organizer_headers):
        payload = dict(NEW_EVENT, end_date="2030-04-01T00:00:00Z", ticket_price=10, ticket_quantity=5)
        response = client.post("/api/organizers/events", json=payload, headers=organizer_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "End date must be after start date"
        assert fake_db.queries("INSERT INTO events") == []

    def test_create_requires_some_tickets(self, client, organizer_headers):
        response = client.post("/api/organizers/events", json=NEW_EVENT, headers=organizer_headers)
        assert response.status_code == 400

    def test_create_rejects_bad_image(self, client, organizer_headers):
        payload = dict(NEW_EVENT, ticket_price=10, ticket_quantity=5, image_data_url="http://x/y.png")
        response = client.post("/api/organizers/events", json=payload, headers=organizer_headers)
        assert response.status_code == 400
        assert "data:image/" in response.json()["detail"]

    def test_other_organizers_event(self, client, fake_db, organizer_headers):
        fake_db.on("SELECT id, organizer_id FROM events", {"id": 5, "organizer_id": 99})
        response = client.get("/api/organizers/events/5", headers=organizer_headers)
        assert response.status_code == 403

    def test_unknown_event(self, client, organizer_headers):
        response = client.get("/api/organizers/events/5", headers=organizer_headers)
        assert response.status_code == 404

    def test_organizer_view_includes_total_created(self, client, fake_db, organizer_headers):
        fake_db.on("SELECT id, organizer_id FROM events", {"id": 5, "organizer_id": 7})
        fake_db.on("FROM events e WHERE e.id", dict(EVENT, status="draft"))
        fake_db.on("GROUP BY event_id", [{"event_id": 5, "sold": 2, "revenue": 2000, "total_created": 3}])
        response = client.get("/api/organizers/events/5", headers=organizer_headers)

        assert response.status_code == 200
        (tier,) = response.json()["data"]["event"]["ticket_types"]
        assert tier["total_created"] == 3
        assert tier["available"] == 48

    def test_status_change_recomputes_stats(self, client, fake_db, organizer_headers):
        fake_db.on("SELECT id, organizer_id FROM events", {"id": 5, "organizer_id": 7})
        fake_db.on("UPDATE events SET status", {"id": 5, "organizer_id": 7, "status": "published"})
        response = client.patch(
            "/api/organizers/events/5/status", json={"status": "published"}, headers=organizer_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["event"]["status"] == "published"
        assert len(fake_db.queries("INSERT INTO dashboard_stats")) == 1

    def test_invalid_status(self, client, fake_db, organizer_headers):
        response = client.patch(
            "/api/organizers/events/5/status", json={"status": "archived"}, headers=organizer_headers
        )
        assert response.status_code == 400
        assert fake_db.queries("UPDATE events") == []

    def test_delete(self, client, fake_db, organizer_headers):
        fake_db.on("SELECT id, organizer_id FROM events", {"id": 5, "organizer_id": 7})
        fake_db.on("DELETE FROM events", {"id": 5})
        response = client.delete("/api/organizers/events/5", headers=organizer_headers)

        assert response.status_code == 200
        texts = fake_db.queries("DELETE FROM")
        assert texts[0].startswith("DELETE FROM ticket_types")
        assert texts[1].startswith("DELETE FROM events")

    def test_dashboard_events_count_default_tier(self, client, fake_db, organizer_headers):
        fake_db.on("ORDER BY start_date DESC", [dict(EVENT, ticket_price=Decimal("1000.00"), ticket_quantity=50)])
        fake_db.on("GROUP BY event_id", [{"event_id": 5, "sold": 2, "revenue": Decimal("2000"), "total_created": 2}])
        response = client.get("/api/organizers/events/dashboard", headers=organizer_headers)

        assert response.status_code == 200
        stats = response.json()["data"]["events"][0]["stats"]
        assert stats["total_tickets"] == 50
        assert stats["sold_tickets"] == 2
        assert stats["available_tickets"] == 48
        assert float(stats["potential_revenue"]) == 50000
        assert float(stats["earned_revenue"]) == 2000

    def test_dashboard_events_use_amounts_paid(self, client, fake_db, organizer_headers):
        fake_db.on("ORDER BY start_date DESC", [dict(EVENT)])
        fake_db.on(
            "FROM ticket_types tt",
            [
                {
                    "id": 11, "event_id": 5, "name": "VIP", "description": "",
                    "price": Decimal("5000.00"), "quantity": 20, "sold": 2,
                    "revenue": Decimal("7500.00"), "total_created": 2,
                    "sales_start_date": None, "sales_end_date": None,
                },
                {
                    "id": 12, "event_id": 5, "name": "Regular", "description": "",
                    "price": Decimal("1000.00"), "quantity": 50, "sold": 8,
                    "revenue": Decimal("8000.00"), "total_created": 9,
                    "sales_start_date": None, "sales_end_date": None,
                },
            ],
        )
        response = client.get("/api/organizers/events/dashboard", headers=organizer_headers)

        stats = response.json()["data"]["events"][0]["stats"]
        assert stats["total_tickets"] == 70
        assert stats["sold_tickets"] == 10
        assert stats["available_tickets"] == 60
        assert float(stats["potential_revenue"]) == 150000
        assert float(stats["earned_revenue"]) == 15500
        assert len(fake_db.queries("FROM ticket_types tt")) == 1
