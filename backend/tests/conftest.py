"""Shared fixtures: a throwaway SQLite database and an API client per test.

The database URL is pointed at a temporary file before ``app`` is imported,
so the engine in ``app.database`` never touches the real data directory.
"""

import asyncio
import os
import tempfile
from collections.abc import Iterator
from datetime import date, timedelta
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="nutrition-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ["RESEND_API_KEY"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from app.config import settings  # noqa: E402
from app.database import drop_tables  # noqa: E402
from app.main import app  # noqa: E402

ADMIN_EMAIL = settings.admin_email
ADMIN_PASSWORD = settings.admin_password


def next_weekday(start: date | None = None) -> date:
    """First Monday to Friday strictly after ``start`` (default today)."""
    day = (start or date.today()) + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def client() -> Iterator[TestClient]:
    """API client on a fresh schema; startup seeds the admin and the foods."""
    asyncio.run(drop_tables())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_headers(client: TestClient) -> dict[str, str]:
    resp = client.post(
        "/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert resp.status_code == 200
    return auth_header(resp.json()["access_token"])


def signup(client: TestClient, email: str, name: str = "Test Client") -> tuple[int, dict[str, str]]:
    resp = client.post(
        "/auth/signup", json={"email": email, "password": "secret123", "full_name": name}
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return body["user"]["id"], auth_header(body["access_token"])


@pytest.fixture()
def client_user(client: TestClient) -> tuple[int, dict[str, str]]:
    """A signed-up client: ``(user_id, headers)``."""
    return signup(client, "priya@example.com", "Priya Sharma")


@pytest.fixture()
def other_client_user(client: TestClient) -> tuple[int, dict[str, str]]:
    return signup(client, "arjun@example.com", "Arjun Mehta")
