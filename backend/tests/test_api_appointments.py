"""API tests for booking, rescheduling and managing appointments."""

from datetime import date, timedelta

from fastapi.testclient import TestClient

from conftest import next_weekday


def _book(client: TestClient, headers: dict[str, str], time: str = "10:00", **extra) -> dict:  # type: ignore[no-untyped-def]
    resp = client.post(
        "/appointments",
        headers=headers,
        json={"appointment_date": next_weekday().isoformat(), "appointment_time": time, **extra},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestBooking:
    def test_slots_are_listed(self, client: TestClient) -> None:
        slots = client.get("/appointments/slots").json()
        assert slots[0] == "09:00"
        assert "16:30" in slots

    def test_booking_starts_pending(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        appt = _book(client, headers, client_notes="First visit")
        assert appt["status"] == "pending"
        assert appt["client_id"] == user_id
        assert appt["client_name"] == "Priya Sharma"
        assert appt["client_notes"] == "First visit"
        assert appt["duration_minutes"] == 60

    def test_unknown_slot_rejected(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        resp = client.post(
            "/appointments",
            headers=headers,
            json={"appointment_date": next_weekday().isoformat(), "appointment_time": "12:00"},
        )
        assert resp.status_code == 422

    def test_past_date_rejected(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        yesterday = date.today() - timedelta(days=1)
        resp = client.post(
            "/appointments",
            headers=headers,
            json={"appointment_date": yesterday.isoformat(), "appointment_time": "10:00"},
        )
        assert resp.status_code == 422

    def test_anonymous_cannot_book(self, client: TestClient) -> None:
        resp = client.post(
            "/appointments",
            json={"appointment_date": next_weekday().isoformat(), "appointment_time": "10:00"},
        )
        assert resp.status_code == 401


class TestVisibility:
    def test_clients_see_only_their_own(self, client: TestClient, client_user, other_client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        _, other_headers = other_client_user
        _book(client, headers, "09:00")
        _book(client, headers, "11:00")
        _book(client, other_headers, "10:00")

        mine = client.get("/appointments", headers=headers).json()
        assert [a["appointment_time"] for a in mine] == ["09:00", "11:00"]
        assert len(client.get("/appointments", headers=other_headers).json()) == 1
        assert len(client.get("/appointments", headers=admin_headers).json()) == 3

    def test_client_cannot_cancel_someone_elses(self, client: TestClient, client_user, other_client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        _, other_headers = other_client_user
        appt = _book(client, headers)
        resp = client.post(f"/appointments/{appt['id']}/cancel", headers=other_headers)
        assert resp.status_code == 404


class TestClientChanges:
    def test_cancel_then_no_further_updates(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = _book(client, headers)
        resp = client.post(f"/appointments/{appt['id']}/cancel", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        again = client.post(f"/appointments/{appt['id']}/cancel", headers=headers)
        assert again.status_code == 404

    def test_client_cannot_confirm(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = _book(client, headers)
        resp = client.patch(
            f"/appointments/{appt['id']}", headers=headers, json={"status": "confirmed"}
        )
        assert resp.status_code == 403
        listed = client.get("/appointments", headers=headers).json()
        assert listed[0]["status"] == "pending"

    def test_reschedule_confirmed_returns_to_pending(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = _book(client, headers)
        client.patch(f"/appointments/{appt['id']}", headers=admin_headers, json={"status": "confirmed"})

        new_day = next_weekday(next_weekday())
        resp = client.post(
            f"/appointments/{appt['id']}/reschedule",
            headers=headers,
            json={"appointment_date": new_day.isoformat(), "appointment_time": "14:00"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "pending"
        assert body["appointment_date"] == new_day.isoformat()
        assert body["appointment_time"] == "14:00"


class TestAdminChanges:
    def test_confirm_and_add_notes(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = _book(client, headers)
        resp = client.patch(
            f"/appointments/{appt['id']}",
            headers=admin_headers,
            json={"status": "confirmed", "notes": "Bring food diary"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "confirmed"
        assert resp.json()["notes"] == "Bring food diary"

    def test_invalid_status_rejected(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = _book(client, headers)
        resp = client.patch(
            f"/appointments/{appt['id']}", headers=admin_headers, json={"status": "maybe"}
        )
        assert resp.status_code == 422

    def test_only_admin_deletes(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = _book(client, headers)
        assert client.delete(f"/appointments/{appt['id']}", headers=headers).status_code == 404
        assert client.delete(f"/appointments/{appt['id']}", headers=admin_headers).status_code == 200
        assert client.get("/appointments", headers=headers).json() == []

    def test_dashboard_counts_pending(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        _book(client, headers)
        stats = client.get("/dashboard/stats", headers=admin_headers).json()
        assert stats["pending_appointments"] == 1
        assert stats["total_clients"] == 1
