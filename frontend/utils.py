"""Shared UI utilities used across all Streamlit pages.

Import at the top of each page:
    from utils import api, require_login, require_admin, show_sidebar
"""

from datetime import date
from typing import Any

import httpx
import pandas as pd
import streamlit as st

MEAL_TYPES = ["breakfast", "lunch", "dinner", "snack"]

_STATUS_COLORS: dict[str, str] = {
    "pending": "orange",
    "confirmed": "green",
    "cancelled": "red",
    "completed": "blue",
    "active": "green",
}

_RARITY_STYLES: dict[str, tuple[str, str]] = {
    # rarity → (background, text color)
    "common": ("#e9ecef", "#333333"),
    "rare": ("#d0e7ff", "#084298"),
    "epic": ("#e8d7ff", "#4b1d8f"),
    "legendary": ("#fff3cd", "#7d5a00"),
}


# ── API access ─────────────────────────────────────────────────────────────────

def api(method: str, path: str, **kwargs: Any) -> Any:
    """Call the backend with the session's bearer token.

    Errors are shown with ``st.error`` and ``None`` is returned, so callers
    only need to check for ``None``. A 401 clears the session and sends the
    user back to the login page.

    Args:
        method: HTTP method, e.g. ``"GET"``.
        path: API path starting with ``/``.
        **kwargs: Passed to ``httpx.request`` (``json``, ``params``, ...).
    """
    api_url = st.session_state.get("api_url", "http://localhost:8000")
    headers = {}
    if st.session_state.get("token"):
        headers["Authorization"] = f"Bearer {st.session_state['token']}"
    try:
        resp = httpx.request(method, f"{api_url}{path}", headers=headers, timeout=10, **kwargs)
    except httpx.ConnectError:
        st.error("Cannot reach the backend. Is the API server running?")
        return None

    if resp.status_code == 401 and st.session_state.get("token"):
        clear_session()
        st.warning("Your session has expired. Please sign in again.")
        st.rerun()
    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        st.error(f"Request failed ({resp.status_code}): {detail}")
        return None
    return resp.json()


def start_session(data: dict) -> None:
    """Store a ``SessionResponse`` from /auth/login or /auth/signup."""
    st.session_state["token"] = data["access_token"]
    st.session_state["user"] = data["user"]
    st.session_state["authenticated"] = True


def clear_session() -> None:
    for key in ("token", "user", "authenticated", "selected_client", "editing_plan"):
        st.session_state.pop(key, None)


def refresh_user() -> dict | None:
    user = api("GET", "/auth/me")
    if user is not None:
        st.session_state["user"] = user
    return user


def current_user() -> dict:
    return st.session_state.get("user", {})


def is_admin() -> bool:
    return "admin" in current_user().get("roles", [])


# ── Guards ─────────────────────────────────────────────────────────────────────

def require_login() -> None:
    """Stop rendering the page unless someone is signed in.

    Call this as the **first statement** in every page (after imports).
    """
    if not st.session_state.get("authenticated"):
        st.warning("Please sign in.")
        st.stop()


def require_admin() -> None:
    require_login()
    if not is_admin():
        st.error("This page is for the nutritionist only.")
        st.stop()


# ── Sidebar ────────────────────────────────────────────────────────────────────

def show_sidebar() -> None:
    """Signed-in user, unread message badge and the logout button."""
    user = current_user()
    with st.sidebar:
        st.divider()
        st.markdown(f"**{user.get('full_name') or user.get('email', '')}**")
        st.caption("Nutritionist" if is_admin() else "Client")
        unread = api("GET", "/messages/unread-count")
        if unread and unread["count"]:
            st.markdown(f"📬 {unread['count']} unread message(s)")
        if st.button("🚪 Logout", use_container_width=True):
            api("POST", "/auth/logout")
            clear_session()
            st.rerun()


# ── Formatting helpers ─────────────────────────────────────────────────────────

def format_date(value: str | None) -> str:
    """``2026-10-19`` → ``Oct 19, 2026``."""
    if not value:
        return "-"
    parsed = date.fromisoformat(value[:10])
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def status_badge(status: str) -> str:
    """Streamlit markdown for a colored status label."""
    return f":{_STATUS_COLORS.get(status, 'grey')}[{status.title()}]"


def rarity_badge_html(rarity: str) -> str:
    """Return an inline HTML pill for an achievement rarity."""
    bg, fg = _RARITY_STYLES.get(rarity, ("#e9ecef", "#333"))
    return (
        f'<span style="background:{bg};color:{fg};padding:2px 10px;'
        f'border-radius:12px;font-size:0.8em;font-weight:700;">'
        f"{rarity.title()}</span>"
    )


def client_options() -> dict[int, str]:
    """Client id → display label, for the nutritionist's pickers."""
    clients = api("GET", "/clients") or []
    return {c["id"]: f"{c['full_name'] or 'Unnamed'} ({c['email']})" for c in clients}


# ── Progress view ──────────────────────────────────────────────────────────────

def render_progress(summary: dict) -> None:
    """Draw a ``ProgressSummary``: metrics, goal chart, pace and achievements.

    Used by the client's progress page and the nutritionist's client view.
    """
    history = summary["history"]
    if not history:
        st.info("No weight records yet.")
        return

    trend = summary.get("trend")
    timeline = summary.get("timeline")

    cols = st.columns(4)
    cols[0].metric("Current", f"{history[-1]['weight_kg']} kg")
    if trend:
        cols[1].metric("Total change", f"{trend['total_change']:+} kg")
        cols[2].metric("Weekly avg", f"{trend['avg_weekly_change']:+} kg")
    cols[3].metric("Logging streak", f"{summary['streak']} days")

    actual = pd.DataFrame(
        {
            "date": [pd.Timestamp(h["recorded_date"]) for h in history],
            "Actual": [h["weight_kg"] for h in history],
        }
    ).groupby("date").last()
    if timeline:
        ideal = pd.DataFrame(
            {
                "date": [pd.Timestamp(p["point_date"]) for p in timeline["ideal_path"]],
                "Ideal": [p["weight_kg"] for p in timeline["ideal_path"]],
            }
        ).set_index("date")
        chart = ideal.join(actual, how="outer")
    else:
        chart = actual
    st.line_chart(chart)

    if timeline:
        st.progress(
            min(timeline["progress_pct"], 100.0) / 100,
            text=f"{timeline['progress_pct']}% of the way to {timeline['target_weight']} kg",
        )
        pace = {"slow": "🐢 slow", "healthy": "✅ healthy", "fast": "⚡ fast"}[timeline["pace"]]
        st.markdown(
            f"Pace: **{pace}** ({timeline['actual_rate']} kg/week) · "
            f"{'Ahead of' if timeline['is_ahead'] else 'Behind'} the ideal path · "
            f"Goal date {format_date(timeline['predicted_end_date'])}"
        )
        if timeline.get("days_ahead") is not None:
            days = timeline["days_ahead"]
            st.caption(
                f"At this rate you reach the target on "
                f"{format_date(timeline['projected_completion'])}, "
                f"{abs(days)} days {'early' if days >= 0 else 'late'}."
            )

    if trend and trend.get("moving_away"):
        st.warning("The recent trend is moving away from the target.")
    elif trend and trend.get("projected_date"):
        st.caption(
            f"Trend projection: target in about {trend['weeks_to_target']} weeks "
            f"({format_date(trend['projected_date'])})."
        )

    achievements = summary["achievements"]
    st.subheader(f"🏆 Achievements ({summary['unlocked_count']}/{len(achievements)})")
    grid = st.columns(3)
    for i, ach in enumerate(achievements):
        with grid[i % 3].container(border=True):
            icon = "🏅" if ach["unlocked"] else "🔒"
            st.markdown(
                f"{icon} **{ach['title']}** {rarity_badge_html(ach['rarity'])}",
                unsafe_allow_html=True,
            )
            st.caption(ach["description"])
            if not ach["unlocked"] and ach.get("max_progress"):
                st.progress(min((ach["progress"] or 0) / ach["max_progress"], 1.0))
