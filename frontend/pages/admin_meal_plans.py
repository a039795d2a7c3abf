"""Nutritionist meal plans — build plans day by day and assign them to clients."""

from datetime import date, timedelta

import pandas as pd
import streamlit as st
from utils import MEAL_TYPES, api, client_options, format_date, require_admin, show_sidebar

require_admin()
show_sidebar()

st.title("🍽️ Meal Plans")

_MEAL_COLUMNS = ["day_number", "meal_type", "meal_name", "calories",
                 "protein_grams", "carbs_grams", "fat_grams", "ingredients", "instructions"]


def _meals_frame(plan: dict | None) -> pd.DataFrame:
    """Flatten a plan's days into one editable row per meal."""
    rows = []
    for day in (plan or {}).get("days", []):
        for meal in day["meals"]:
            rows.append({"day_number": day["day_number"], **{k: meal.get(k) for k in _MEAL_COLUMNS[1:]}})
    return pd.DataFrame(rows, columns=_MEAL_COLUMNS)


def _plain(value):  # type: ignore[no-untyped-def]
    # numpy scalars from the editor are not JSON serializable.
    if pd.isna(value):
        return None
    return value.item() if hasattr(value, "item") else value


def _plan_payload(title: str, description: str, duration: int, meals: pd.DataFrame,
                  day_notes: dict[int, str]) -> dict:
    days = []
    for day_number in range(1, duration + 1):
        day_meals = []
        for row in meals[meals["day_number"] == day_number].to_dict("records"):
            if not _plain(row.get("meal_name")) or not _plain(row.get("meal_type")):
                continue
            meal = {k: _plain(v) for k, v in row.items() if k != "day_number"}
            if meal.get("calories") is not None:
                meal["calories"] = int(meal["calories"])
            day_meals.append(meal)
        days.append({"day_number": day_number, "notes": day_notes.get(day_number) or None,
                     "meals": day_meals})
    return {"title": title, "description": description or None,
            "duration_days": duration, "days": days}


plans = api("GET", "/meal-plans") or []
tab_plans, tab_assign, tab_assignments = st.tabs(["Plans", "Assign", "Assignments"])

# ── Plan editor ───────────────────────────────────────────────────────────────
with tab_plans:
    plan_labels = {0: "➕ New plan", **{p["id"]: p["title"] for p in plans}}
    plan_id = st.selectbox("Plan", list(plan_labels), format_func=lambda i: plan_labels[i])
    plan = api("GET", f"/meal-plans/{plan_id}") if plan_id else None

    title = st.text_input("Title", value=plan["title"] if plan else "", key=f"title_{plan_id}")
    description = st.text_area(
        "Description", value=(plan or {}).get("description") or "", key=f"desc_{plan_id}"
    )
    duration = st.number_input(
        "Duration (days)", min_value=1, max_value=90,
        value=plan["duration_days"] if plan else 7, key=f"duration_{plan_id}",
    )

    with st.expander("Day notes"):
        existing_notes = {d["day_number"]: d.get("notes") or "" for d in (plan or {}).get("days", [])}
        day_notes = {
            n: st.text_input(f"Day {n}", value=existing_notes.get(n, ""), key=f"note_{plan_id}_{n}")
            for n in range(1, int(duration) + 1)
        }

    st.markdown("**Meals** (one row per meal)")
    meals = st.data_editor(
        _meals_frame(plan),
        num_rows="dynamic",
        use_container_width=True,
        key=f"meals_{plan_id}",
        column_config={
            "day_number": st.column_config.NumberColumn("Day", min_value=1, max_value=int(duration), step=1),
            "meal_type": st.column_config.SelectboxColumn("Type", options=MEAL_TYPES),
            "meal_name": st.column_config.TextColumn("Meal"),
            "calories": st.column_config.NumberColumn("kcal", min_value=0, step=1),
        },
    )

    col_save, col_delete = st.columns([1, 1])
    if col_save.button("Save plan", type="primary"):
        payload = _plan_payload(title, description, int(duration), meals, day_notes)
        saved = (api("PUT", f"/meal-plans/{plan_id}", json=payload) if plan_id
                 else api("POST", "/meal-plans", json=payload))
        if saved is not None:
            st.success(f"Saved '{saved['title']}'.")
    if plan_id and col_delete.button("Delete plan"):
        if api("DELETE", f"/meal-plans/{plan_id}") is not None:
            st.rerun()

# ── Assign ────────────────────────────────────────────────────────────────────
with tab_assign:
    clients = client_options()
    if not plans or not clients:
        st.info("You need at least one plan and one client to make an assignment.")
    else:
        with st.form("assign_form"):
            client_id = st.selectbox("Client", list(clients), format_func=lambda i: clients[i])
            titles = {p["id"]: p["title"] for p in plans}
            assign_plan = st.selectbox("Plan", list(titles), format_func=lambda i: titles[i])
            start = st.date_input("Start date", value=date.today())
            set_end = st.checkbox("Set an end date")
            end = st.date_input("End date", value=date.today() + timedelta(days=6))
            notes = st.text_area("Notes for the client (optional)")
            if st.form_submit_button("Assign", type="primary"):
                assigned = api(
                    "POST",
                    "/assignments",
                    json={
                        "client_id": client_id,
                        "meal_plan_id": assign_plan,
                        "start_date": start.isoformat(),
                        "end_date": end.isoformat() if set_end else None,
                        "notes": notes or None,
                    },
                )
                if assigned is not None:
                    st.success(f"Assigned to {assigned['client_name'] or 'client'}; they have been emailed.")

# ── Assignments ───────────────────────────────────────────────────────────────
with tab_assignments:
    assignments = api("GET", "/assignments") or []
    if not assignments:
        st.caption("No assignments yet.")
    for a in assignments:
        with st.container(border=True):
            col_info, col_status, col_delete = st.columns([4, 2, 1])
            col_info.markdown(
                f"**{a['client_name'] or 'Client'}** · {a['meal_plan_title']} · "
                f"{format_date(a['start_date'])} to {format_date(a.get('end_date'))}"
            )
            statuses = ["active", "completed", "cancelled"]
            new_status = col_status.selectbox(
                "Status", statuses, index=statuses.index(a["status"]),
                key=f"status_{a['id']}", label_visibility="collapsed",
            )
            if new_status != a["status"]:
                if api("PATCH", f"/assignments/{a['id']}", json={"status": new_status}) is not None:
                    st.rerun()
            if col_delete.button("✕", key=f"del_assignment_{a['id']}", help="Remove assignment"):
                if api("DELETE", f"/assignments/{a['id']}") is not None:
                    st.rerun()
