"""Progress page — record weights; see the goal timeline, trend and achievements."""

from datetime import date

import streamlit as st
from utils import api, render_progress, require_login, show_sidebar

require_login()
show_sidebar()

st.title("📈 Progress")

with st.form("weight_form", clear_on_submit=True):
    col1, col2, col3 = st.columns([1, 1, 2])
    weight = col1.number_input("Weight (kg)", min_value=0.0, step=0.1)
    recorded = col2.date_input("Date", value=date.today(), max_value=date.today())
    notes = col3.text_input("Notes (optional)")
    if st.form_submit_button("Add Weight", type="primary"):
        added = api(
            "POST",
            "/progress/weights",
            json={"weight_kg": weight, "recorded_date": recorded.isoformat(), "notes": notes or None},
        )
        if added is not None:
            st.toast("Weight recorded")

summary = api("GET", "/progress/summary")
if summary is not None:
    render_progress(summary)
