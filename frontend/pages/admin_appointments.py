"""Nutritionist appointments — confirm, complete or cancel client requests."""

import streamlit as st
from utils import api, format_date, require_admin, show_sidebar, status_badge

require_admin()
show_sidebar()

st.title("📅 Appointments")

status_filter = st.radio(
    "Show", ["pending", "confirmed", "completed", "cancelled", "all"], horizontal=True
)
appointments = api("GET", "/appointments") or []
if status_filter != "all":
    appointments = [a for a in appointments if a["status"] == status_filter]

if not appointments:
    st.info("No appointments to show.")

for appt in appointments:
    with st.container(border=True):
        col_info, col_actions = st.columns([3, 2])
        with col_info:
            st.markdown(
                f"**{appt['client_name'] or 'Client'}** · {format_date(appt['appointment_date'])} "
                f"at {appt['appointment_time']} · {status_badge(appt['status'])}"
            )
            if appt.get("client_notes"):
                st.caption(f"Client notes: {appt['client_notes']}")
            notes = st.text_input("Your notes", value=appt.get("notes") or "", key=f"notes_{appt['id']}")

        with col_actions:
            actions = {
                "pending": [("Confirm", "confirmed"), ("Cancel", "cancelled")],
                "confirmed": [("Mark completed", "completed"), ("Cancel", "cancelled")],
            }.get(appt["status"], [])
            for label, new_status in actions:
                if st.button(label, key=f"{new_status}_{appt['id']}"):
                    updated = api(
                        "PATCH",
                        f"/appointments/{appt['id']}",
                        json={"status": new_status, "notes": notes or None},
                    )
                    if updated is not None:
                        st.rerun()
            if st.button("Save notes", key=f"save_{appt['id']}"):
                if api("PATCH", f"/appointments/{appt['id']}", json={"notes": notes or None}) is not None:
                    st.toast("Notes saved")
            if st.button("Delete", key=f"delete_{appt['id']}"):
                if api("DELETE", f"/appointments/{appt['id']}") is not None:
                    st.rerun()
