"""Client meal plans — browse assigned plans day by day and tick off meals."""

from datetime import date, timedelta

import streamlit as st
from utils import api, format_date, require_login, show_sidebar, status_badge

require_login()
show_sidebar()

st.title("🍽️ My Meal Plans")

assignments = api("GET", "/my/meal-plans") or []
active = [a for a in assignments if a["status"] == "active"]
if not active:
    st.info("Your nutritionist has not assigned a meal plan yet.")
    st.stop()

labels = {a["id"]: f"{a['meal_plan_title']} (from {format_date(a['start_date'])})" for a in active}
assignment_id = st.selectbox("Plan", list(labels), format_func=lambda i: labels[i])
assignment = next(a for a in active if a["id"] == assignment_id)

st.markdown(status_badge(assignment["status"]))
if assignment.get("meal_plan_description"):
    st.caption(assignment["meal_plan_description"])
if assignment.get("notes"):
    st.info(assignment["notes"])

plan = api("GET", f"/meal-plans/{assignment['meal_plan_id']}")
if plan is None:
    st.stop()
completed = set(api("GET", f"/assignments/{assignment_id}/completions") or [])
start = date.fromisoformat(assignment["start_date"])

tabs = st.tabs([f"Day {d['day_number']}" for d in plan["days"]])
for tab, day in zip(tabs, plan["days"]):
    meal_day = start + timedelta(days=day["day_number"] - 1)
    with tab:
        st.caption(format_date(meal_day.isoformat()))
        if day.get("notes"):
            st.markdown(f"_{day['notes']}_")
        if not day["meals"]:
            st.caption("No meals planned for this day.")
        for meal in day["meals"]:
            key = f"{meal_day.isoformat()}_{meal['meal_type']}_{meal['meal_name']}"
            done = key in completed
            with st.container(border=True):
                col_meal, col_done = st.columns([5, 1])
                with col_meal:
                    st.markdown(f"**{meal['meal_type'].title()}:** {meal['meal_name']}")
                    macros = [
                        f"{meal['calories']} kcal" if meal.get("calories") else None,
                        f"P {meal['protein_grams']}g" if meal.get("protein_grams") else None,
                        f"C {meal['carbs_grams']}g" if meal.get("carbs_grams") else None,
                        f"F {meal['fat_grams']}g" if meal.get("fat_grams") else None,
                    ]
                    st.caption(" · ".join(m for m in macros if m))
                    if meal.get("ingredients"):
                        st.markdown(f"Ingredients: {meal['ingredients']}")
                    if meal.get("instructions"):
                        st.markdown(f"Instructions: {meal['instructions']}")
                with col_done:
                    ticked = st.checkbox("Eaten", value=done, key=f"done_{meal['id']}")
                if ticked != done:
                    api(
                        "POST",
                        f"/assignments/{assignment_id}/completions",
                        json={"meal_id": meal["id"]},
                    )
                    st.rerun()
