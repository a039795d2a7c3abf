"""Tests for the email functions: rendering, delivery and failure handling.

The mail provider is replaced by ``httpx.MockTransport``; no request leaves
the process.
"""

import asyncio
import json
from datetime import date, timedelta
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from app import notification_service
from app.config import settings
from app.errors import NotificationError
from app.models import (
    AppointmentNotification,
    AppointmentRequestNotification,
    MealPlanNotification,
)

CONFIRMATION = AppointmentNotification(
    client_email="priya@example.com",
    client_name="Priya",
    appointment_date="2026-10-19",
    appointment_time="10:00",
    notes="Bring your food diary",
)


def _mock_client(status: int, captured: list[httpx.Request]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        if status >= 400:
            return httpx.Response(status, json={"message": "invalid from address"})
        return httpx.Response(status, json={"id": "email_123"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture()
def api_key(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setattr(settings, "resend_api_key", "re_test_key")
    return "re_test_key"


class TestRendering:
    def test_confirmation_formats_long_date(self) -> None:
        html = notification_service.render_email(
            "appointment_confirmed.html", CONFIRMATION, "View My Appointments", "/appointments"
        )
        assert "Monday, October 19, 2026" in html
        assert "Hello Priya!" in html
        assert "Bring your food diary" in html
        assert f"{settings.app_url}/appointments" in html

    def test_meal_plan_formats_short_dates(self) -> None:
        payload = MealPlanNotification(
            client_email="priya@example.com",
            client_name="Priya",
            meal_plan_title="Balanced Week",
            start_date="2026-10-19",
            end_date="2026-10-25",
        )
        html = notification_service.render_email(
            "meal_plan_assigned.html", payload, "View My Meal Plan", "/meal_plans"
        )
        assert "10/19/2026" in html
        assert "10/25/2026" in html

    def test_values_are_escaped(self) -> None:
        payload = AppointmentRequestNotification(
            admin_email="admin@example.com",
            client_name="<script>alert(1)</script>",
            client_email="x@example.com",
            appointment_date="2026-10-19",
            appointment_time="10:00",
        )
        html = notification_service.render_email(
            "appointment_request.html", payload, "View", "/admin_appointments"
        )
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_optional_notes_omitted(self) -> None:
        payload = CONFIRMATION.model_copy(update={"notes": None})
        html = notification_service.render_email(
            "appointment_confirmed.html", payload, "View", "/appointments"
        )
        assert "Notes:" not in html


class TestDelivery:
    def test_skipped_without_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "resend_api_key", "")
        result = asyncio.run(notification_service.send_appointment_notification(CONFIRMATION))
        assert result["skipped"] is True

    def test_posts_to_provider(self, api_key: str) -> None:
        captured: list[httpx.Request] = []

        async def run() -> dict[str, Any]:
            async with _mock_client(200, captured) as http:
                return await notification_service.send_appointment_notification(CONFIRMATION, http)

        result = asyncio.run(run())
        assert result == {"id": "email_123"}
        request = captured[0]
        assert request.headers["Authorization"] == f"Bearer {api_key}"
        body = json.loads(request.content)
        assert body["to"] == ["priya@example.com"]
        assert body["subject"] == f"Appointment Confirmed - {settings.brand_name}"
        assert body["from"] == settings.mail_from

    def test_request_subject_names_client(self, api_key: str) -> None:
        captured: list[httpx.Request] = []
        payload = AppointmentRequestNotification(
            admin_email="admin@example.com",
            client_name="Priya",
            client_email="priya@example.com",
            appointment_date="2026-10-19",
            appointment_time="10:00",
        )

        async def run() -> None:
            async with _mock_client(200, captured) as http:
                await notification_service.send_appointment_request_notification(payload, http)

        asyncio.run(run())
        body = json.loads(captured[0].content)
        assert body["subject"] == "New Appointment Request from Priya"
        assert body["to"] == ["admin@example.com"]

    def test_provider_error_raises(self, api_key: str) -> None:
        async def run() -> None:
            async with _mock_client(422, []) as http:
                await notification_service.send_appointment_notification(CONFIRMATION, http)

        with pytest.raises(NotificationError, match="422"):
            asyncio.run(run())


class TestFunctionEndpoints:
    def test_camel_case_payload_accepted(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        resp = client.post(
            "/functions/v1/send-meal-plan-notification",
            headers=headers,
            json={
                "clientEmail": "priya@example.com",
                "clientName": "Priya",
                "mealPlanTitle": "Balanced Week",
                "startDate": "2026-10-19",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["skipped"] is True

    def test_provider_failure_returns_500(self, client: TestClient, client_user, monkeypatch: pytest.MonkeyPatch) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user

        async def failing(payload: Any, client: Any = None) -> dict[str, Any]:
            raise NotificationError("Mail provider unreachable")

        failing.__name__ = "send_appointment_notification"
        monkeypatch.setattr(notification_service, "send_appointment_notification", failing)
        resp = client.post(
            "/functions/v1/send-appointment-notification",
            headers=headers,
            json={
                "clientEmail": "priya@example.com",
                "clientName": "Priya",
                "appointmentDate": "2026-10-19",
                "appointmentTime": "10:00",
            },
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Mail provider unreachable"}

    def test_requires_sign_in(self, client: TestClient) -> None:
        resp = client.post("/functions/v1/send-meal-plan-notification", json={})
        assert resp.status_code == 401

    def test_booking_survives_mail_failure(self, client: TestClient, client_user, monkeypatch: pytest.MonkeyPatch) -> None:  # type: ignore[no-untyped-def]
        from conftest import next_weekday

        _, headers = client_user

        async def failing(payload: Any, client: Any = None) -> dict[str, Any]:
            raise NotificationError("Mail provider unreachable")

        monkeypatch.setattr(notification_service, "send_appointment_request_notification", failing)
        resp = client.post(
            "/appointments",
            headers=headers,
            json={"appointment_date": next_weekday().isoformat(), "appointment_time": "09:30"},
        )
        assert resp.status_code == 200
        assert len(client.get("/appointments", headers=headers).json()) == 1


@pytest.fixture()
def sent(monkeypatch: pytest.MonkeyPatch) -> dict[str, list[Any]]:
    """Capture the payload of every notification the API triggers."""
    outbox: dict[str, list[Any]] = {}
    for name in (
        "send_appointment_notification",
        "send_appointment_request_notification",
        "send_meal_plan_notification",
    ):

        async def record(payload: Any, client: Any = None, _name: str = name) -> dict[str, Any]:
            outbox.setdefault(_name, []).append(payload)
            return {"id": "captured"}

        monkeypatch.setattr(notification_service, name, record)
    return outbox


class TestTriggeredNotifications:
    def _book(self, client: TestClient, headers: dict[str, str]) -> dict[str, Any]:
        from conftest import next_weekday

        resp = client.post(
            "/appointments",
            headers=headers,
            json={
                "appointment_date": next_weekday().isoformat(),
                "appointment_time": "10:00",
                "client_notes": "First visit",
            },
        )
        assert resp.status_code == 200, resp.text
        return resp.json()

    def test_booking_notifies_admin(self, client: TestClient, client_user, sent) -> None:  # type: ignore[no-untyped-def]
        from conftest import ADMIN_EMAIL

        _, headers = client_user
        appt = self._book(client, headers)
        [payload] = sent["send_appointment_request_notification"]
        assert payload.admin_email == ADMIN_EMAIL.lower()
        assert payload.client_email == "priya@example.com"
        assert payload.client_name == "Priya Sharma"
        assert payload.appointment_date == appt["appointment_date"]
        assert payload.client_notes == "First visit"

    def test_confirming_emails_client(self, client: TestClient, client_user, admin_headers, sent) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = self._book(client, headers)
        resp = client.patch(
            f"/appointments/{appt['id']}",
            headers=admin_headers,
            json={"status": "confirmed", "notes": "Bring your food diary"},
        )
        assert resp.status_code == 200
        [payload] = sent["send_appointment_notification"]
        assert payload.client_email == "priya@example.com"
        assert payload.client_name == "Priya Sharma"
        assert payload.appointment_date == appt["appointment_date"]
        assert payload.appointment_time == "10:00"
        assert payload.notes == "Bring your food diary"

    def test_notes_only_update_sends_nothing(self, client: TestClient, client_user, admin_headers, sent) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        appt = self._book(client, headers)
        client.patch(f"/appointments/{appt['id']}", headers=admin_headers, json={"notes": "Call first"})
        assert "send_appointment_notification" not in sent

    def test_rescheduling_confirmed_asks_admin_again(self, client: TestClient, client_user, admin_headers, sent) -> None:  # type: ignore[no-untyped-def]
        from conftest import next_weekday

        _, headers = client_user
        appt = self._book(client, headers)
        client.patch(f"/appointments/{appt['id']}", headers=admin_headers, json={"status": "confirmed"})
        old_day = date.fromisoformat(appt["appointment_date"])
        new_day = next_weekday(old_day)
        resp = client.post(
            f"/appointments/{appt['id']}/reschedule",
            headers=headers,
            json={"appointment_date": new_day.isoformat(), "appointment_time": "14:00"},
        )
        assert resp.status_code == 200

        requests = sent["send_appointment_request_notification"]
        assert len(requests) == 2
        assert requests[-1].appointment_date == new_day.isoformat()
        assert requests[-1].appointment_time == "14:00"
        assert requests[-1].client_notes == (
            f"Rescheduled from {old_day:%b} {old_day.day}, {old_day.year} at 10:00"
        )

    def test_rescheduling_pending_sends_nothing_new(self, client: TestClient, client_user, sent) -> None:  # type: ignore[no-untyped-def]
        from conftest import next_weekday

        _, headers = client_user
        appt = self._book(client, headers)
        new_day = next_weekday(date.fromisoformat(appt["appointment_date"]))
        client.post(
            f"/appointments/{appt['id']}/reschedule",
            headers=headers,
            json={"appointment_date": new_day.isoformat(), "appointment_time": "11:00"},
        )
        assert len(sent["send_appointment_request_notification"]) == 1

    def test_assigning_plan_emails_client(self, client: TestClient, client_user, admin_headers, sent) -> None:  # type: ignore[no-untyped-def]
        client_id, _ = client_user
        plan = client.post(
            "/meal-plans",
            headers=admin_headers,
            json={"title": "Balanced Week", "duration_days": 7},
        ).json()
        start = date(2026, 11, 2)
        resp = client.post(
            "/assignments",
            headers=admin_headers,
            json={
                "client_id": client_id,
                "meal_plan_id": plan["id"],
                "start_date": start.isoformat(),
                "end_date": (start + timedelta(days=6)).isoformat(),
                "notes": "Start slowly",
            },
        )
        assert resp.status_code == 200
        [payload] = sent["send_meal_plan_notification"]
        assert payload.client_email == "priya@example.com"
        assert payload.client_name == "Priya Sharma"
        assert payload.meal_plan_title == "Balanced Week"
        assert payload.start_date == "2026-11-02"
        assert payload.end_date == "2026-11-08"
        assert payload.notes == "Start slowly"
