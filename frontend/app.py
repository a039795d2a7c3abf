"""Streamlit entrypoint — navigation controller.

Handles role-conditional routing via st.navigation():
- Nutritionist:    Dashboard, Clients, Appointments, Meal Plans, Messages
- Client:          Home, Appointments, Meal Plans, Meal Log, Progress, Messages, Profile
  (Onboarding only, until the client has completed it)
- Unauthenticated: Login (default) + Sign Up — both hidden from sidebar

Run with:
    streamlit run app.py --server.port 8501
"""

import os

import streamlit as st
from utils import is_admin

API_URL = os.getenv("API_URL", "http://localhost:8000")

st.set_page_config(
    page_title="Nutrition Coaching",
    page_icon="🥗",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Initialise persistent session state keys on first load.
if "api_url" not in st.session_state:
    st.session_state["api_url"] = API_URL

authenticated = st.session_state.get("authenticated", False)
user = st.session_state.get("user", {})

# ── Navigation routing ─────────────────────────────────────────────────────────
if not authenticated:
    pg = st.navigation(
        [
            st.Page("pages/login.py", title="Login", default=True),
            st.Page("pages/0_signup.py", title="Sign Up"),
        ],
        position="hidden",
    )
elif is_admin():
    pg = st.navigation(
        [
            st.Page("pages/admin_dashboard.py", title="Dashboard", icon="📊", default=True),
            st.Page("pages/admin_clients.py", title="Clients", icon="👥"),
            st.Page("pages/admin_appointments.py", title="Appointments", icon="📅"),
            st.Page("pages/admin_meal_plans.py", title="Meal Plans", icon="🍽️"),
            st.Page("pages/admin_messages.py", title="Messages", icon="💬"),
        ]
    )
elif not user.get("onboarding_completed"):
    pg = st.navigation(
        [st.Page("pages/onboarding.py", title="Welcome", icon="👋", default=True)]
    )
else:
    pg = st.navigation(
        [
            st.Page("pages/home.py", title="Home", icon="🏠", default=True),
            st.Page("pages/appointments.py", title="Appointments", icon="📅"),
            st.Page("pages/meal_plans.py", title="Meal Plans", icon="🍽️"),
            st.Page("pages/meal_log.py", title="Meal Log", icon="📝"),
            st.Page("pages/progress.py", title="Progress", icon="📈"),
            st.Page("pages/messages.py", title="Messages", icon="💬"),
            st.Page("pages/profile.py", title="Profile", icon="👤"),
        ]
    )

pg.run()
