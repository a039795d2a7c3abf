"""Client profile — contact details, goals and body metrics."""

from datetime import date

import streamlit as st
from utils import api, refresh_user, require_login, show_sidebar

require_login()
show_sidebar()

st.title("👤 Profile")

profile = api("GET", "/profile")
if profile is None:
    st.stop()

with st.form("profile_form"):
    col1, col2 = st.columns(2)
    with col1:
        full_name = st.text_input("Full name", value=profile.get("full_name") or "")
        phone = st.text_input("Phone", value=profile.get("phone") or "")
        age = st.number_input("Age", min_value=1, max_value=120, value=profile.get("age") or 30)
        height = st.number_input(
            "Height (cm)", min_value=50.0, max_value=250.0, value=float(profile.get("height_cm") or 165)
        )
    with col2:
        target_weight = st.number_input(
            "Target weight (kg)",
            min_value=20.0,
            max_value=400.0,
            value=float(profile.get("target_weight_kg") or 65),
            step=0.1,
        )
        current_target_date = profile.get("target_date")
        target_date = st.date_input(
            "Target date",
            value=date.fromisoformat(current_target_date) if current_target_date else None,
        )
        dietary_goals = st.text_area("Dietary goals", value=profile.get("dietary_goals") or "")
    submitted = st.form_submit_button("Save", type="primary")

if submitted:
    saved = api(
        "PATCH",
        "/profile",
        json={
            "full_name": full_name or None,
            "phone": phone or None,
            "age": int(age),
            "height_cm": height,
            "target_weight_kg": target_weight,
            "target_date": target_date.isoformat() if target_date else None,
            "dietary_goals": dietary_goals or None,
        },
    )
    if saved is not None:
        refresh_user()
        st.success("Profile saved.")
