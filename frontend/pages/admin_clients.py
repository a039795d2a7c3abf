"""Nutritionist client view — profiles, progress and meal logs per client."""

from datetime import date

import streamlit as st
from utils import api, client_options, format_date, render_progress, require_admin, show_sidebar

require_admin()
show_sidebar()

st.title("👥 Clients")

options = client_options()
if not options:
    st.info("No clients have signed up yet.")
    st.stop()

client_id = st.selectbox(
    "Client",
    list(options),
    format_func=lambda i: options[i],
    key="selected_client",
)
client = api("GET", f"/clients/{client_id}")
if client is None:
    st.stop()

col1, col2, col3, col4 = st.columns(4)
col1.metric("Age", client.get("age") or "-")
col2.metric("Height", f"{client['height_cm']} cm" if client.get("height_cm") else "-")
col3.metric("Start weight", f"{client['current_weight_kg']} kg" if client.get("current_weight_kg") else "-")
col4.metric("Target", f"{client['target_weight_kg']} kg" if client.get("target_weight_kg") else "-")
st.caption(
    f"Joined {format_date(client.get('created_at'))} · "
    f"Target date {format_date(client.get('target_date'))} · "
    f"{'Onboarded' if client['onboarding_completed'] else 'Not onboarded yet'}"
)
if client.get("dietary_goals"):
    st.markdown(f"**Dietary goals:** {client['dietary_goals']}")

tab_progress, tab_meals, tab_plans = st.tabs(["Progress", "Meal log", "Meal plans"])

with tab_progress:
    summary = api("GET", "/progress/summary", params={"user_id": client_id})
    if summary is not None:
        render_progress(summary)

with tab_meals:
    day = st.date_input("Day", value=date.today(), key="client_log_day")
    log = api("GET", "/meal-logs", params={"logged_date": day.isoformat(), "user_id": client_id})
    if log is not None:
        totals = log["totals"]
        st.markdown(
            f"**{totals['calories']} kcal** · P {totals['protein_grams']}g · "
            f"C {totals['carbs_grams']}g · F {totals['fat_grams']}g · {totals['meal_count']} meal(s)"
        )
        for entry in log["logs"]:
            st.markdown(
                f"- {entry['meal_type'].title()}: {entry['meal_name']} "
                f"({entry['calories'] or 0} kcal)" + (f" · _{entry['notes']}_" if entry.get("notes") else "")
            )

with tab_plans:
    assignments = api("GET", "/assignments", params={"client_id": client_id}) or []
    if not assignments:
        st.caption("No meal plans assigned.")
    for a in assignments:
        st.markdown(
            f"**{a['meal_plan_title']}** · {format_date(a['start_date'])} to "
            f"{format_date(a.get('end_date'))} · {a['status']}"
        )
