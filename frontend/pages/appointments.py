"""Client appointments — book, reschedule and cancel consultations."""

from datetime import date, timedelta

import streamlit as st
from utils import api, format_date, require_login, show_sidebar, status_badge

require_login()
show_sidebar()

st.title("📅 Appointments")


@st.cache_data(ttl=3600)
def fetch_slots(api_url: str) -> list[str]:
    """Bookable start times; they only change with a deploy."""
    return api("GET", "/appointments/slots") or []


def _next_weekday(day: date) -> date:
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


slots = fetch_slots(st.session_state.get("api_url", ""))

# ── Booking form ──────────────────────────────────────────────────────────────
with st.expander("Book a consultation", expanded=True):
    with st.form("book_form"):
        appt_date = st.date_input(
            "Date (weekdays only)", value=_next_weekday(date.today()), min_value=date.today()
        )
        appt_time = st.selectbox("Time", slots)
        notes = st.text_area("Anything you'd like to discuss? (optional)")
        submitted = st.form_submit_button("Request Appointment", type="primary")
    if submitted:
        booked = api(
            "POST",
            "/appointments",
            json={
                "appointment_date": appt_date.isoformat(),
                "appointment_time": appt_time,
                "client_notes": notes or None,
            },
        )
        if booked is not None:
            st.success("Request sent! Your nutritionist will confirm it shortly.")

# ── My appointments ───────────────────────────────────────────────────────────
st.subheader("My appointments")
appointments = api("GET", "/appointments") or []
if not appointments:
    st.info("You have no appointments yet.")

for appt in reversed(appointments):
    with st.container(border=True):
        col_info, col_actions = st.columns([3, 2])
        with col_info:
            st.markdown(
                f"**{format_date(appt['appointment_date'])}** at {appt['appointment_time']} "
                f"· {status_badge(appt['status'])}"
            )
            if appt.get("client_notes"):
                st.caption(f"Your notes: {appt['client_notes']}")
            if appt.get("notes"):
                st.caption(f"Nutritionist: {appt['notes']}")

        if appt["status"] not in ("pending", "confirmed"):
            continue
        with col_actions:
            if st.button("Cancel", key=f"cancel_{appt['id']}"):
                if api("POST", f"/appointments/{appt['id']}/cancel") is not None:
                    st.rerun()
            with st.popover("Reschedule"):
                new_date = st.date_input(
                    "New date",
                    value=_next_weekday(date.today()),
                    min_value=date.today(),
                    key=f"date_{appt['id']}",
                )
                new_time = st.selectbox("New time", slots, key=f"time_{appt['id']}")
                if st.button("Confirm new time", key=f"resched_{appt['id']}"):
                    moved = api(
                        "POST",
                        f"/appointments/{appt['id']}/reschedule",
                        json={
                            "appointment_date": new_date.isoformat(),
                            "appointment_time": new_time,
                        },
                    )
                    if moved is not None:
                        st.rerun()
