"""API tests for meal plans, assignments and marking plan meals eaten."""

from datetime import date, timedelta

from fastapi.testclient import TestClient

PLAN = {
    "title": "Balanced Week",
    "description": "High protein vegetarian plan",
    "duration_days": 3,
    "days": [
        {
            "day_number": 1,
            "notes": "Drink 3L water",
            "meals": [
                {"meal_type": "breakfast", "meal_name": "Idli", "calories": 200, "protein_grams": 6},
                {"meal_type": "lunch", "meal_name": "Dal Tadka", "calories": 350},
            ],
        },
        {
            "day_number": 2,
            "meals": [{"meal_type": "dinner", "meal_name": "Palak Paneer", "calories": 400}],
        },
        {"day_number": 3, "meals": []},
    ],
}


def _create_plan(client: TestClient, headers: dict[str, str], plan: dict = PLAN) -> dict:  # type: ignore[type-arg]
    resp = client.post("/meal-plans", headers=headers, json=plan)
    assert resp.status_code == 200, resp.text
    return resp.json()


def _assign(client: TestClient, headers: dict[str, str], client_id: int, plan_id: int, start: date) -> dict:  # type: ignore[type-arg]
    resp = client.post(
        "/assignments",
        headers=headers,
        json={"client_id": client_id, "meal_plan_id": plan_id, "start_date": start.isoformat()},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestMealPlanEditor:
    def test_create_returns_nested_days(self, client: TestClient, admin_headers) -> None:  # type: ignore[no-untyped-def]
        plan = _create_plan(client, admin_headers)
        assert plan["title"] == "Balanced Week"
        assert [d["day_number"] for d in plan["days"]] == [1, 2, 3]
        assert [m["meal_name"] for m in plan["days"][0]["meals"]] == ["Idli", "Dal Tadka"]
        assert plan["days"][0]["notes"] == "Drink 3L water"

    def test_create_without_days_adds_empty_days(self, client: TestClient, admin_headers) -> None:  # type: ignore[no-untyped-def]
        plan = _create_plan(client, admin_headers, {"title": "Blank", "duration_days": 5})
        assert [d["day_number"] for d in plan["days"]] == [1, 2, 3, 4, 5]
        assert all(d["meals"] == [] for d in plan["days"])

    def test_blank_title_rejected(self, client: TestClient, admin_headers) -> None:  # type: ignore[no-untyped-def]
        resp = client.post("/meal-plans", headers=admin_headers, json={"title": "   "})
        assert resp.status_code == 422

    def test_update_replaces_days(self, client: TestClient, admin_headers) -> None:  # type: ignore[no-untyped-def]
        plan = _create_plan(client, admin_headers)
        updated = {
            "title": "Balanced Week v2",
            "duration_days": 1,
            "days": [{"day_number": 1, "meals": [{"meal_type": "snack", "meal_name": "Sprouts"}]}],
        }
        resp = client.put(f"/meal-plans/{plan['id']}", headers=admin_headers, json=updated)
        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "Balanced Week v2"
        assert len(body["days"]) == 1
        assert body["days"][0]["meals"][0]["meal_name"] == "Sprouts"

    def test_delete(self, client: TestClient, admin_headers) -> None:  # type: ignore[no-untyped-def]
        plan = _create_plan(client, admin_headers)
        assert client.delete(f"/meal-plans/{plan['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/meal-plans/{plan['id']}", headers=admin_headers).status_code == 404

    def test_clients_cannot_create_plans(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        resp = client.post("/meal-plans", headers=headers, json={"title": "Mine"})
        assert resp.status_code == 403


class TestAssignments:
    def test_plan_visible_only_while_assignment_active(self, client: TestClient, admin_headers, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        plan = _create_plan(client, admin_headers)
        assert client.get(f"/meal-plans/{plan['id']}", headers=headers).status_code == 404

        assignment = _assign(client, admin_headers, user_id, plan["id"], date.today())
        assert assignment["status"] == "active"
        assert assignment["meal_plan_title"] == "Balanced Week"
        assert assignment["client_name"] == "Priya Sharma"

        visible = client.get(f"/meal-plans/{plan['id']}", headers=headers)
        assert visible.status_code == 200
        assert len(visible.json()["days"][0]["meals"]) == 2

        client.patch(
            f"/assignments/{assignment['id']}", headers=admin_headers, json={"status": "completed"}
        )
        assert client.get(f"/meal-plans/{plan['id']}", headers=headers).status_code == 404

    def test_other_clients_cannot_see_assignment(self, client: TestClient, admin_headers, client_user, other_client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, _ = client_user
        _, other_headers = other_client_user
        plan = _create_plan(client, admin_headers)
        _assign(client, admin_headers, user_id, plan["id"], date.today())
        assert client.get("/my/meal-plans", headers=other_headers).json() == []
        assert client.get(f"/meal-plans/{plan['id']}", headers=other_headers).status_code == 404

    def test_end_before_start_rejected(self, client: TestClient, admin_headers, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, _ = client_user
        plan = _create_plan(client, admin_headers)
        resp = client.post(
            "/assignments",
            headers=admin_headers,
            json={
                "client_id": user_id,
                "meal_plan_id": plan["id"],
                "start_date": date.today().isoformat(),
                "end_date": (date.today() - timedelta(days=1)).isoformat(),
            },
        )
        assert resp.status_code == 422


class TestTodaysPlan:
    def test_no_plan_returns_null(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        resp = client.get("/my/meal-plans/today", headers=headers)
        assert resp.status_code == 200
        assert resp.json() is None

    def test_day_number_follows_start_date(self, client: TestClient, admin_headers, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        plan = _create_plan(client, admin_headers)
        _assign(client, admin_headers, user_id, plan["id"], date.today() - timedelta(days=1))

        today = client.get("/my/meal-plans/today", headers=headers).json()
        assert today["day_number"] == 2
        assert [m["meal_name"] for m in today["meals"]] == ["Palak Paneer"]
        assert today["meals"][0]["completed"] is False

    def test_finished_plan_is_not_shown(self, client: TestClient, admin_headers, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        plan = _create_plan(client, admin_headers)
        _assign(client, admin_headers, user_id, plan["id"], date.today() - timedelta(days=10))
        assert client.get("/my/meal-plans/today", headers=headers).json() is None


class TestMealCompletion:
    def test_toggle_logs_and_unlogs_meal(self, client: TestClient, admin_headers, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        plan = _create_plan(client, admin_headers)
        assignment = _assign(client, admin_headers, user_id, plan["id"], date.today())
        meal = plan["days"][0]["meals"][0]
        url = f"/assignments/{assignment['id']}/completions"

        marked = client.post(url, headers=headers, json={"meal_id": meal["id"]})
        assert marked.status_code == 200
        assert marked.json()["completed"] is True

        key = f"{date.today().isoformat()}_breakfast_Idli"
        assert client.get(url, headers=headers).json() == [key]
        logs = client.get("/meal-logs", headers=headers).json()
        assert logs["totals"]["calories"] == 200
        assert logs["logs"][0]["notes"] == "Completed from meal plan"
        today = client.get("/my/meal-plans/today", headers=headers).json()
        assert today["meals"][0]["completed"] is True

        unmarked = client.post(url, headers=headers, json={"meal_id": meal["id"]})
        assert unmarked.json()["completed"] is False
        assert client.get(url, headers=headers).json() == []
        assert client.get("/meal-logs", headers=headers).json()["logs"] == []

    def test_later_day_is_logged_on_its_own_date(self, client: TestClient, admin_headers, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        plan = _create_plan(client, admin_headers)
        start = date.today() - timedelta(days=1)
        assignment = _assign(client, admin_headers, user_id, plan["id"], start)
        meal = plan["days"][0]["meals"][1]

        client.post(
            f"/assignments/{assignment['id']}/completions", headers=headers, json={"meal_id": meal["id"]}
        )
        logs = client.get(
            "/meal-logs", headers=headers, params={"logged_date": start.isoformat()}
        ).json()
        assert [log["meal_name"] for log in logs["logs"]] == ["Dal Tadka"]

    def test_meal_from_another_plan_rejected(self, client: TestClient, admin_headers, client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        plan = _create_plan(client, admin_headers)
        other = _create_plan(client, admin_headers, {**PLAN, "title": "Other"})
        assignment = _assign(client, admin_headers, user_id, plan["id"], date.today())
        _assign(client, admin_headers, user_id, other["id"], date.today())
        foreign_meal = other["days"][0]["meals"][0]

        resp = client.post(
            f"/assignments/{assignment['id']}/completions",
            headers=headers,
            json={"meal_id": foreign_meal["id"]},
        )
        assert resp.status_code == 422
