"""Transactional email functions.

Each ``send_*`` function renders one Jinja2 template from
``backend/templates`` and posts it to the Resend HTTP API. They back the
``/functions/v1/send-*`` endpoints and are also called directly by the
feature services after a booking, a reschedule, a confirmation or a plan
assignment.

With no ``RESEND_API_KEY`` configured, delivery is skipped and reported in
the return value instead of failing.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import settings
from app.errors import NotificationError
from app.models import (
    AppointmentNotification,
    AppointmentRequestNotification,
    MealPlanNotification,
)

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


def _parse_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _long_date(value: str) -> str:
    """``2026-10-19`` → ``Monday, October 19, 2026``."""
    parsed = _parse_date(value)
    if parsed is None:
        return value
    return f"{parsed:%A}, {parsed:%B} {parsed.day}, {parsed.year}"


def _short_date(value: str) -> str:
    """``2026-10-19`` → ``10/19/2026``."""
    parsed = _parse_date(value)
    if parsed is None:
        return value
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
_env.filters["longdate"] = _long_date
_env.filters["shortdate"] = _short_date


def render_email(template_name: str, payload: Any, link_label: str, link_path: str) -> str:
    """Render one email body.

    Args:
        template_name: File name under ``backend/templates``.
        payload: The notification request model, exposed as ``payload``.
        link_label: Text of the call-to-action button.
        link_path: Portal path appended to ``settings.app_url``.

    Returns:
        The HTML document. All payload values are autoescaped.
    """
    template = _env.get_template(template_name)
    return template.render(
        payload=payload,
        brand_name=settings.brand_name,
        link_label=link_label,
        link_url=settings.app_url.rstrip("/") + link_path,
    )


async def send_email(
    to: str,
    subject: str,
    html: str,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """POST one email to the mail provider.

    Args:
        to: Recipient address.
        subject: Subject line.
        html: Rendered HTML body.
        client: Optional shared HTTP client; a short-lived one is used if
            omitted.

    Returns:
        The provider's JSON response, or ``{"skipped": True, ...}`` when no
        API key is configured.

    Raises:
        NotificationError: If the provider is unreachable or rejects the
            request.
    """
    if not settings.resend_api_key:
        logger.info("Mail delivery not configured; skipping '%s' to %s", subject, to)
        return {"skipped": True, "reason": "RESEND_API_KEY is not configured."}

    body = {"from": settings.mail_from, "to": [to], "subject": subject, "html": html}
    headers = {"Authorization": f"Bearer {settings.resend_api_key}"}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=10) as owned:
                response = await owned.post(settings.resend_api_url, json=body, headers=headers)
        else:
            response = await client.post(settings.resend_api_url, json=body, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise NotificationError(
            f"Mail provider rejected the message ({exc.response.status_code}): "
            f"{exc.response.text}"
        ) from exc
    except httpx.HTTPError as exc:
        raise NotificationError(f"Mail provider unreachable: {exc}") from exc

    logger.info("Sent '%s' to %s", subject, to)
    result: dict[str, Any] = response.json()
    return result


# ── Functions ─────────────────────────────────────────────────────────────────


async def send_appointment_notification(
    payload: AppointmentNotification, client: httpx.AsyncClient | None = None
) -> dict[str, Any]:
    """Tell a client their appointment is confirmed."""
    html = render_email(
        "appointment_confirmed.html", payload, "View My Appointments", "/appointments"
    )
    subject = f"Appointment Confirmed - {settings.brand_name}"
    return await send_email(payload.client_email, subject, html, client)


async def send_appointment_request_notification(
    payload: AppointmentRequestNotification, client: httpx.AsyncClient | None = None
) -> dict[str, Any]:
    """Tell the nutritionist a client requested (or rescheduled) an appointment."""
    html = render_email(
        "appointment_request.html", payload, "View in Admin Dashboard", "/admin_appointments"
    )
    subject = f"New Appointment Request from {payload.client_name}"
    return await send_email(payload.admin_email, subject, html, client)


async def send_meal_plan_notification(
    payload: MealPlanNotification, client: httpx.AsyncClient | None = None
) -> dict[str, Any]:
    """Tell a client a meal plan was assigned to them."""
    html = render_email(
        "meal_plan_assigned.html", payload, "View My Meal Plan", "/meal_plans"
    )
    subject = f"New Meal Plan Assigned - {settings.brand_name}"
    return await send_email(payload.client_email, subject, html, client)
