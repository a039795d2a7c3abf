"""Nutritionist dashboard — headline counts and today's schedule."""

from datetime import date

import streamlit as st
from utils import api, require_admin, show_sidebar, status_badge

require_admin()
show_sidebar()

st.title("📊 Dashboard")

stats = api("GET", "/dashboard/stats")
if stats is not None:
    cols = st.columns(4)
    cols[0].metric("Clients", stats["total_clients"])
    cols[1].metric("Pending appointments", stats["pending_appointments"])
    cols[2].metric("Active meal plans", stats["active_meal_plans"])
    cols[3].metric("Unread messages", stats["unread_messages"])

st.subheader("Today's appointments")
today = date.today().isoformat()
all_appointments = api("GET", "/appointments") or []
appointments = [
    a for a in all_appointments
    if a["appointment_date"] == today and a["status"] != "cancelled"
]
if not appointments:
    st.caption("Nothing scheduled for today.")
for appt in appointments:
    st.markdown(
        f"**{appt['appointment_time']}** · {appt['client_name'] or 'Client'} · "
        f"{status_badge(appt['status'])}"
    )

st.subheader("Waiting for confirmation")
pending = [a for a in all_appointments if a["status"] == "pending"]
if not pending:
    st.caption("No pending requests.")
else:
    st.page_link("pages/admin_appointments.py", label=f"Review {len(pending)} request(s) →")
