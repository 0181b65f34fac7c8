import json

import pytest

from app.models import Closure, ForcedOpenDay
from conftest import MONDAY, WEDNESDAY


def body(response):
    return json.loads(response.data)


@pytest.mark.calendar
class TestClosureAdmin:
    """/api/admin/calendar/closures"""

    def test_requires_admin_key(self, client):
        response = client.post(
            "/api/admin/calendar/closures", json={"date": WEDNESDAY.isoformat()}
        )
        assert response.status_code == 401
        assert body(response)["kind"] == "unauthorized"

    def test_wrong_admin_key(self, client):
        response = client.get(
            "/api/admin/calendar/closures", headers={"X-ADMIN-KEY": "nope"}
        )
        assert response.status_code == 401

    def test_create_full_day_closure(self, client, db, admin_headers):
        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "reason": "Staff training"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        closure = body(response)["closure"]
        assert closure["full_day"] is True
        assert closure["start_time"] is None
        assert db.session.query(Closure).count() == 1

        availability = body(
            client.get(f"/api/availability?date={WEDNESDAY.isoformat()}")
        )
        assert availability["open"] is False
        assert availability["reason"] == "full_day_closure"

    def test_create_partial_closure(self, client, admin_headers):
        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "14:00", "end_time": "16:00"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        closure = body(response)["closure"]
        assert closure["full_day"] is False
        assert (closure["start_time"], closure["end_time"]) == ("14:00", "16:00")

    def test_only_one_time_rejected(self, client, admin_headers):
        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "14:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_start_not_before_end_rejected(self, client, admin_headers):
        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "16:00", "end_time": "16:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "before" in body(response)["message"]

    def test_missing_date_rejected(self, client, admin_headers):
        response = client.post(
            "/api/admin/calendar/closures", json={"reason": "?"}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_duplicate_closure_rejected(self, client, admin_headers, add_closure):
        add_closure(WEDNESDAY)
        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "14:00", "end_time": "16:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_same_partial_window_rejected(self, client, admin_headers, add_closure):
        add_closure(WEDNESDAY, "14:00", "16:00")
        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "14:00", "end_time": "16:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400

        other_window = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "17:00", "end_time": "18:00"},
            headers=admin_headers,
        )
        assert other_window.status_code == 201

    def test_full_day_closure_rejected_over_confirmed_booking(
        self, client, db, admin_headers, services, book
    ):
        book([services["cut"].id], "10:00")

        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat()},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert body(response)["conflict"] == {"start": "10:00", "end": "11:00"}
        assert db.session.query(Closure).count() == 0

    def test_partial_closure_rejected_over_confirmed_booking(
        self, client, admin_headers, services, book
    ):
        book([services["cut"].id], "10:00")

        overlapping = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "10:30", "end_time": "12:00"},
            headers=admin_headers,
        )
        back_to_back = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat(), "start_time": "11:00", "end_time": "12:00"},
            headers=admin_headers,
        )

        assert overlapping.status_code == 409
        assert back_to_back.status_code == 201

    def test_cancelled_booking_does_not_block_closure(
        self, client, admin_headers, services, book
    ):
        reservation = body(book([services["cut"].id], "10:00"))["reservation"]
        client.delete(f"/api/reservations/{reservation['id']}?customer_id=1")

        response = client.post(
            "/api/admin/calendar/closures",
            json={"date": WEDNESDAY.isoformat()},
            headers=admin_headers,
        )
        assert response.status_code == 201

    def test_list_and_delete(self, client, db, admin_headers, add_closure):
        closure = add_closure(WEDNESDAY, reason="Inventory")
        closure_id = closure.id

        listed = body(client.get("/api/admin/calendar/closures", headers=admin_headers))
        assert [c["id"] for c in listed["closures"]] == [closure_id]

        response = client.delete(
            f"/api/admin/calendar/closures/{closure_id}", headers=admin_headers
        )
        assert response.status_code == 200
        assert db.session.query(Closure).count() == 0

    def test_delete_unknown_closure(self, client, admin_headers):
        response = client.delete("/api/admin/calendar/closures/999", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.calendar
class TestForcedOpenDayAdmin:
    """/api/admin/calendar/forced-open-days"""

    def test_create_opens_closed_weekday(self, client, admin_headers):
        response = client.post(
            "/api/admin/calendar/forced-open-days",
            json={"date": MONDAY.isoformat(), "reason": "Holiday week"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert body(response)["forced_open_day"]["date"] == MONDAY.isoformat()

        availability = body(client.get(f"/api/availability?date={MONDAY.isoformat()}"))
        assert availability["open"] is True
        assert availability["hours"]["close_time"] == "20:30"

    def test_duplicate_rejected(self, client, admin_headers, add_forced_open_day):
        add_forced_open_day(MONDAY)
        response = client.post(
            "/api/admin/calendar/forced-open-days",
            json={"date": MONDAY.isoformat()},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_list_and_delete(self, client, db, admin_headers, add_forced_open_day):
        day_id = add_forced_open_day(MONDAY).id

        listed = body(
            client.get("/api/admin/calendar/forced-open-days", headers=admin_headers)
        )
        assert [d["id"] for d in listed["forced_open_days"]] == [day_id]

        response = client.delete(
            f"/api/admin/calendar/forced-open-days/{day_id}", headers=admin_headers
        )
        assert response.status_code == 200
        assert db.session.query(ForcedOpenDay).count() == 0
        assert (
            client.delete(
                f"/api/admin/calendar/forced-open-days/{day_id}", headers=admin_headers
            ).status_code
            == 404
        )


@pytest.mark.calendar
class TestMonthCalendar:
    """GET /api/holidays"""

    def test_month_view(self, client, add_closure, add_forced_open_day):
        add_closure(WEDNESDAY, reason="Training")
        add_closure(WEDNESDAY.replace(day=22), "14:00", "16:00")
        add_forced_open_day(MONDAY)

        data = body(client.get("/api/holidays?year=2026&month=10"))

        assert data["year"] == 2026
        assert data["month"] == 10
        assert data["closed_weekday"] == 0
        assert data["forced_open_days"] == ["2026-10-26"]
        assert len(data["closures"]) == 2
        assert len(data["days"]) == 31

        days = {d["date"]: d for d in data["days"]}
        assert days["2026-10-19"]["open"] is False
        assert days["2026-10-19"]["reason"] == "weekly_closed_day"
        assert days["2026-10-26"]["open"] is True
        assert days["2026-10-26"]["forced_open"] is True
        assert days["2026-10-21"]["reason"] == "full_day_closure"
        assert days["2026-10-22"]["open"] is True
        assert days["2026-10-22"]["partial_closures"] == [{"start": "14:00", "end": "16:00"}]
        assert days["2026-10-24"]["hours"]["close_time"] == "20:30"
        assert days["2026-10-23"]["hours"]["close_time"] == "21:00"

    def test_defaults_to_current_month(self, client, db):
        data = body(client.get("/api/holidays"))
        assert (data["year"], data["month"]) == (2026, 10)

    def test_invalid_month(self, client, db):
        assert client.get("/api/holidays?year=2026&month=13").status_code == 400
        assert client.get("/api/holidays?year=2026&month=0").status_code == 400
        assert client.get("/api/holidays?year=abc").status_code == 400
