"""Client home — today's meals, nutrition so far and upcoming appointments."""

from datetime import date

import streamlit as st
from utils import api, format_date, require_login, show_sidebar, status_badge

require_login()
show_sidebar()

user = st.session_state.get("user", {})
st.title(f"Hello, {user.get('full_name') or 'there'}!")

# ── Today's nutrition ─────────────────────────────────────────────────────────
day = api("GET", "/meal-logs")
if day is not None:
    totals = day["totals"]
    cols = st.columns(4)
    cols[0].metric("Calories", totals["calories"])
    cols[1].metric("Protein (g)", totals["protein_grams"])
    cols[2].metric("Carbs (g)", totals["carbs_grams"])
    cols[3].metric("Fat (g)", totals["fat_grams"])

# ── Today's plan ──────────────────────────────────────────────────────────────
st.subheader("Today's meal plan")
plan = api("GET", "/my/meal-plans/today")
if not plan:
    st.info("No meal plan is scheduled for today.")
else:
    st.markdown(
        f"**{plan['meal_plan_title']}** · Day {plan['day_number']} of {plan['duration_days']}"
    )
    if plan.get("day_notes"):
        st.caption(plan["day_notes"])
    for meal in plan["meals"]:
        checked = st.checkbox(
            f"{meal['meal_type'].title()}: {meal['meal_name']}"
            + (f" ({meal['calories']} kcal)" if meal.get("calories") else ""),
            value=meal["completed"],
            key=f"today_meal_{meal['id']}",
        )
        if checked != meal["completed"]:
            api(
                "POST",
                f"/assignments/{plan['assignment_id']}/completions",
                json={"meal_id": meal["id"]},
            )
            st.rerun()

# ── Upcoming appointments ─────────────────────────────────────────────────────
st.subheader("Upcoming appointments")
appointments = api("GET", "/appointments") or []
upcoming = [
    a for a in appointments
    if a["status"] in ("pending", "confirmed") and a["appointment_date"] >= date.today().isoformat()
]
if not upcoming:
    st.caption("No upcoming appointments.")
for appt in upcoming[:3]:
    st.markdown(
        f"{format_date(appt['appointment_date'])} at {appt['appointment_time']} · "
        f"{status_badge(appt['status'])}"
    )
