"""API tests for weight records and the progress summary."""

from datetime import date, timedelta

from fastapi.testclient import TestClient


def _onboard(client: TestClient, headers: dict[str, str], weight: float = 80, target: float = 70) -> None:
    resp = client.post(
        "/profile/onboarding",
        headers=headers,
        json={"age": 34, "height_cm": 170, "current_weight_kg": weight, "target_weight_kg": target},
    )
    assert resp.status_code == 200


class TestWeightRecords:
    def test_add_and_list_oldest_first(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        today = date.today()
        client.post("/progress/weights", headers=headers, json={"weight_kg": 79})
        client.post(
            "/progress/weights",
            headers=headers,
            json={"weight_kg": 80, "recorded_date": (today - timedelta(days=7)).isoformat()},
        )
        weights = client.get("/progress/weights", headers=headers).json()
        assert [w["weight_kg"] for w in weights] == [80, 79]

    def test_non_positive_weight_rejected(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        assert client.post("/progress/weights", headers=headers, json={"weight_kg": 0}).status_code == 422

    def test_future_date_rejected(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        resp = client.post(
            "/progress/weights", headers=headers, json={"weight_kg": 70, "recorded_date": tomorrow}
        )
        assert resp.status_code == 422

    def test_weights_are_private(self, client: TestClient, client_user, other_client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        _, other_headers = other_client_user
        client.post("/progress/weights", headers=headers, json={"weight_kg": 79})
        params = {"user_id": user_id}
        assert client.get("/progress/weights", headers=other_headers, params=params).json() == []
        assert len(client.get("/progress/weights", headers=admin_headers, params=params).json()) == 1


class TestProgressSummary:
    def test_summary_after_onboarding_only(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        _onboard(client, headers)
        summary = client.get("/progress/summary", headers=headers).json()
        assert summary["trend"] is None
        assert summary["timeline"]["start_weight"] == 80
        assert summary["timeline"]["progress_pct"] == 0
        assert summary["streak"] == 1
        first_log = next(a for a in summary["achievements"] if a["id"] == "first-log")
        assert first_log["unlocked"] is True

    def test_summary_with_progress(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        _onboard(client, headers)
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        client.post("/progress/weights", headers=headers, json={"weight_kg": 78.5, "recorded_date": yesterday})

        summary = client.get("/progress/summary", headers=headers).json()
        trend = summary["trend"]
        assert trend["start_weight"] == 78.5
        assert trend["current_weight"] == 80
        assert summary["timeline"]["start_weight"] == 80
        assert summary["streak"] == 2
        assert summary["unlocked_count"] >= 1

    def test_admin_views_client_summary(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        _onboard(client, headers)
        resp = client.get("/progress/summary", headers=admin_headers, params={"user_id": user_id})
        assert resp.status_code == 200
        assert resp.json()["user_id"] == user_id

    def test_other_client_summary_is_hidden(self, client: TestClient, client_user, other_client_user) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        _, other_headers = other_client_user
        _onboard(client, headers)
        resp = client.get("/progress/summary", headers=other_headers, params={"user_id": user_id})
        assert resp.status_code == 404
