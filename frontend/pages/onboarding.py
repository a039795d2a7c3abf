"""First-visit onboarding — collects starting health metrics."""

from datetime import date, timedelta

import streamlit as st
from utils import api, refresh_user, require_login, show_sidebar

require_login()
show_sidebar()

st.title("👋 Welcome!")
st.markdown(
    "Tell us where you are starting from. Your nutritionist uses these numbers "
    "to build your plan, and your progress page tracks them over time."
)

with st.form("onboarding_form"):
    col1, col2 = st.columns(2)
    with col1:
        age = st.number_input("Age", min_value=1, max_value=120, value=30, step=1)
        height_cm = st.number_input("Height (cm)", min_value=50.0, max_value=250.0, value=165.0)
    with col2:
        current_weight = st.number_input(
            "Current weight (kg)", min_value=20.0, max_value=400.0, value=70.0, step=0.1
        )
        target_weight = st.number_input(
            "Target weight (kg)", min_value=20.0, max_value=400.0, value=65.0, step=0.1
        )
    set_date = st.checkbox("I have a target date")
    target_date = st.date_input(
        "Target date", value=date.today() + timedelta(weeks=12), min_value=date.today()
    )
    submitted = st.form_submit_button("Get Started", type="primary", use_container_width=True)

if submitted:
    result = api(
        "POST",
        "/profile/onboarding",
        json={
            "age": int(age),
            "height_cm": height_cm,
            "current_weight_kg": current_weight,
            "target_weight_kg": target_weight,
            "target_date": target_date.isoformat() if set_date else None,
        },
    )
    if result is not None:
        refresh_user()
        st.rerun()
