"""Meal log — record meals (optionally from the food database) and review history."""

from datetime import date, timedelta

import pandas as pd
import streamlit as st
from utils import MEAL_TYPES, api, format_date, require_login, show_sidebar

require_login()
show_sidebar()

st.title("📝 Meal Log")

# ── Food lookup ───────────────────────────────────────────────────────────────
query = st.text_input("Search the food database", placeholder="e.g. dal, paneer, idli")
prefill: dict = {}
if query:
    foods = api("GET", "/foods", params={"q": query}) or []
    if not foods:
        st.caption("No foods found.")
    else:
        options = {f["id"]: f for f in foods}
        food_id = st.selectbox(
            "Food",
            list(options),
            format_func=lambda i: f"{options[i]['food_name']} · {options[i]['common_serving_size'] or '100g'}",
        )
        prefill = options[food_id]["serving"] or {}

# ── Log form ──────────────────────────────────────────────────────────────────
with st.form("log_form", clear_on_submit=True):
    col1, col2 = st.columns(2)
    with col1:
        meal_name = st.text_input("Meal", value=prefill.get("meal_name", ""))
        meal_type = st.selectbox("Type", MEAL_TYPES)
        logged_date = st.date_input("Date", value=date.today(), max_value=date.today())
    with col2:
        calories = st.number_input("Calories", min_value=0, value=int(prefill.get("calories") or 0))
        protein = st.number_input("Protein (g)", min_value=0.0, value=float(prefill.get("protein_grams") or 0))
        carbs = st.number_input("Carbs (g)", min_value=0.0, value=float(prefill.get("carbs_grams") or 0))
        fat = st.number_input("Fat (g)", min_value=0.0, value=float(prefill.get("fat_grams") or 0))
    notes = st.text_input("Notes (optional)")
    if st.form_submit_button("Log Meal", type="primary"):
        logged = api(
            "POST",
            "/meal-logs",
            json={
                "meal_name": meal_name,
                "meal_type": meal_type,
                "calories": calories or None,
                "protein_grams": protein or None,
                "carbs_grams": carbs or None,
                "fat_grams": fat or None,
                "notes": notes or None,
                "logged_date": logged_date.isoformat(),
            },
        )
        if logged is not None:
            st.toast(f"Logged {logged['meal_name']}")

# ── Selected day ──────────────────────────────────────────────────────────────
view_date = st.date_input("Show day", value=date.today(), key="view_date")
day = api("GET", "/meal-logs", params={"logged_date": view_date.isoformat()})
if day is not None:
    totals = day["totals"]
    cols = st.columns(4)
    cols[0].metric("Calories", totals["calories"])
    cols[1].metric("Protein (g)", totals["protein_grams"])
    cols[2].metric("Carbs (g)", totals["carbs_grams"])
    cols[3].metric("Fat (g)", totals["fat_grams"])

    for log in day["logs"]:
        col_log, col_del = st.columns([6, 1])
        col_log.markdown(
            f"**{log['meal_type'].title()}** · {log['meal_name']} "
            f"({log['calories'] or 0} kcal) · {log['logged_time'][:5]}"
        )
        if col_del.button("✕", key=f"del_log_{log['id']}", help="Delete this entry"):
            if api("DELETE", f"/meal-logs/{log['id']}") is not None:
                st.rerun()

# ── Last 7 days ───────────────────────────────────────────────────────────────
st.subheader("Last 7 days")
history = api(
    "GET",
    "/meal-logs/history",
    params={
        "start": (date.today() - timedelta(days=6)).isoformat(),
        "end": date.today().isoformat(),
    },
) or []
if history:
    df = pd.DataFrame(
        [{"date": format_date(d["logged_date"]), "calories": d["totals"]["calories"]} for d in history]
    ).set_index("date")
    st.bar_chart(df)
else:
    st.caption("Nothing logged this week yet.")
