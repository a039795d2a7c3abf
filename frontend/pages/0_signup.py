"""Client signup. The nutritionist account is created at server start."""

import streamlit as st
from utils import api, start_session

st.title("🥗 Create your account")

with st.form("signup_form"):
    full_name = st.text_input("Full name", placeholder="e.g. Priya Sharma")
    email = st.text_input("Email")
    password = st.text_input("Password", type="password", help="At least 6 characters.")
    confirm_password = st.text_input("Confirm password", type="password")
    submitted = st.form_submit_button("Sign up", type="primary")

if submitted:
    if password != confirm_password:
        st.error("Passwords do not match.")
    else:
        # Onboarding is shown next: app.py routes clients without metrics there.
        session = api(
            "POST",
            "/auth/signup",
            json={"email": email, "password": password, "full_name": full_name},
        )
        if session is not None:
            start_session(session)
            st.rerun()

st.page_link("pages/login.py", label="Already have an account? Sign in")
