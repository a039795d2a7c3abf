"""Login page for clients and the nutritionist."""

import streamlit as st
from utils import api, start_session

st.title("🥗 Welcome back")
st.caption("Sign in to see your meal plans, appointments and progress.")

with st.form("login_form"):
    email = st.text_input("Email")
    password = st.text_input("Password", type="password")
    submitted = st.form_submit_button("Sign in", type="primary")

if submitted:
    if not email or not password:
        st.warning("Enter your email and password.")
    else:
        session = api("POST", "/auth/login", json={"email": email, "password": password})
        if session is not None:
            start_session(session)
            st.rerun()

st.page_link("pages/0_signup.py", label="New client? Create an account")
