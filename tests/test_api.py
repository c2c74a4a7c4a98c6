"""
HTTP API tests.

The app is built with in-memory storage and a fixed clock
(2024-03-20) and driven through FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from fintracker.api import create_app
from fintracker.config import Settings
from fintracker.orchestrator import create_app_components
from fintracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    StoreUnavailableError,
)

from conftest import TODAY, run


USER = "Sarthak_Pawnar_03"


@pytest.fixture
def storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def client(storage):
    settings = Settings()
    components = create_app_components(
        settings,
        expense_storage=storage,
        audit_storage=InMemoryAuditStorage(),
        today=lambda: TODAY,
    )
    app = create_app(settings=settings, components=components)
    with TestClient(app) as test_client:
        yield test_client


def add_expense(client, **overrides):
    body = {
        "userId": USER,
        "amount": "42.50",
        "category": "food",
        "description": "Lunch",
        "date": "2024-03-15",
    }
    body.update(overrides)
    return client.post("/expenses", json=body)


class TestAuthEndpoints:

    def test_login_and_verify(self, client):
        response = client.post("/auth/login", json={"username": USER, "password": "finance"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"] == {"username": USER, "name": "Sarthak Pawnar"}

        verify = client.get("/auth/verify", params={"token": body["token"]})
        assert verify.status_code == 200
        assert verify.json()["user"]["username"] == USER

    def test_verify_with_bearer_header(self, client):
        token = client.post(
            "/auth/login", json={"username": "John Doe", "password": "Fullstackdev"}
        ).json()["token"]
        response = client.get("/auth/verify", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["user"]["name"] == "John Doe"

    def test_bad_password(self, client):
        response = client.post("/auth/login", json={"username": USER, "password": "nope"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid credentials"}

    def test_unknown_user_gets_same_error(self, client):
        response = client.post("/auth/login", json={"username": "ghost", "password": "finance"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_verify_without_token(self, client):
        assert client.get("/auth/verify").status_code == 401

    def test_verify_garbage_token(self, client):
        response = client.get("/auth/verify", params={"token": "garbage"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_login_missing_field(self, client):
        response = client.post("/auth/login", json={"username": USER})
        assert response.status_code == 400


class TestExpenseEndpoints:

    def test_categories(self, client):
        response = client.get("/categories")
        assert response.json()["categories"] == [
            "food", "travel", "rent", "utilities", "entertainment", "healthcare", "other",
        ]

    def test_create(self, client):
        response = add_expense(client)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["warnings"] == []
        expense = body["expense"]
        assert expense["amount"] == 42.5
        assert expense["userId"] == USER
        assert expense["date"] == "2024-03-15"
        assert expense["id"]

    def test_create_with_numeric_amount_and_timestamp_date(self, client):
        response = add_expense(client, amount=19.99, date="2024-03-01T00:00:00.000Z")
        expense = response.json()["expense"]
        assert expense["amount"] == 19.99
        assert expense["date"] == "2024-03-01"

    def test_missing_amount_is_rejected(self, client, storage):
        body = {"userId": USER, "category": "food", "date": "2024-03-15"}
        response = client.post("/expenses", json=body)
        assert response.status_code == 400
        assert response.json()["issues"][0]["field"] == "amount"
        assert run(storage.count_expenses()) == 0

    def test_unparseable_amount_is_rejected(self, client, storage):
        response = add_expense(client, amount="abc")
        assert response.status_code == 400
        assert run(storage.count_expenses()) == 0

    @pytest.mark.parametrize("amount", ["1e400", 1e300, "12.345"])
    def test_out_of_range_amount_is_rejected(self, client, storage, amount):
        response = add_expense(client, amount=amount)
        assert response.status_code == 400
        assert response.json()["issues"][0]["field"] == "amount"
        assert run(storage.count_expenses()) == 0

        dashboard = client.get("/dashboard", params={"userId": USER, "asOf": "2024-03-20"})
        assert dashboard.status_code == 200
        assert dashboard.json()["totalThisMonth"] == 0

    @pytest.mark.parametrize("bad_date", ["2024-03-15Tnonsense", "2024-03-15 not a time"])
    def test_timestamp_with_trailing_junk_is_rejected(self, client, storage, bad_date):
        response = add_expense(client, date=bad_date)
        assert response.status_code == 400
        assert response.json()["issues"][0]["field"] == "date"
        assert run(storage.count_expenses()) == 0

    def test_update_to_out_of_range_amount_is_rejected(self, client):
        expense_id = add_expense(client).json()["expense"]["id"]
        response = client.put(f"/expenses/{expense_id}", json={"amount": "1e400"})
        assert response.status_code == 400

        listed = client.get("/expenses", params={"userId": USER})
        assert listed.status_code == 200
        assert listed.json()["expenses"][0]["amount"] == 42.5

    def test_unknown_category_is_accepted_with_warning(self, client):
        response = add_expense(client, category="gadgets")
        assert response.status_code == 200
        assert len(response.json()["warnings"]) == 1

    def test_list_by_month(self, client):
        add_expense(client, date="2024-03-15")
        add_expense(client, date="2024-02-10")
        add_expense(client, userId="John Doe")

        response = client.get("/expenses", params={"userId": USER, "month": 3, "year": 2024})
        assert response.status_code == 200
        expenses = response.json()["expenses"]
        assert len(expenses) == 1
        assert expenses[0]["date"] == "2024-03-15"

        everything = client.get("/expenses", params={"userId": USER}).json()["expenses"]
        assert [e["date"] for e in everything] == ["2024-03-15", "2024-02-10"]

    def test_list_empty_month(self, client):
        add_expense(client)
        response = client.get("/expenses", params={"userId": USER, "month": 1, "year": 2020})
        assert response.status_code == 200
        assert response.json() == {"expenses": []}

    def test_list_requires_user(self, client):
        assert client.get("/expenses").status_code == 400

    def test_list_month_without_year(self, client):
        response = client.get("/expenses", params={"userId": USER, "month": 3})
        assert response.status_code == 400

    def test_list_non_numeric_month(self, client):
        response = client.get("/expenses", params={"userId": USER, "month": "march", "year": 2024})
        assert response.status_code == 400

    def test_update(self, client):
        expense_id = add_expense(client).json()["expense"]["id"]
        response = client.put(
            f"/expenses/{expense_id}",
            json={"amount": 50, "description": "Dinner", "userId": "John Doe"},
        )
        assert response.status_code == 200
        expense = response.json()["expense"]
        assert expense["amount"] == 50.0
        assert expense["description"] == "Dinner"
        assert expense["userId"] == USER
        assert expense["category"] == "food"
        assert expense["updatedAt"] is not None

    def test_update_unknown(self, client):
        response = client.put("/expenses/missing", json={"amount": 1})
        assert response.status_code == 404
        assert response.json()["error"] == "Expense not found"

    def test_update_invalid(self, client):
        expense_id = add_expense(client).json()["expense"]["id"]
        response = client.put(f"/expenses/{expense_id}", json={"date": "yesterday"})
        assert response.status_code == 400

    def test_delete_twice(self, client, storage):
        expense_id = add_expense(client).json()["expense"]["id"]

        first = client.delete(f"/expenses/{expense_id}")
        assert first.status_code == 200
        assert first.json() == {"success": True}
        assert run(storage.count_expenses()) == 0

        second = client.delete(f"/expenses/{expense_id}")
        assert second.status_code == 404


class TestDashboardEndpoint:

    def test_scenario(self, client):
        login = client.post("/auth/login", json={"username": USER, "password": "finance"})
        assert login.json()["user"]["name"] == "Sarthak Pawnar"

        created = add_expense(client, amount="42.50", category="food", date="2024-03-15")
        assert created.json()["expense"]["amount"] == 42.5

        listed = client.get("/expenses", params={"userId": USER, "month": 3, "year": 2024})
        assert len(listed.json()["expenses"]) == 1

        dashboard = client.get("/dashboard", params={"userId": USER, "asOf": "2024-03-20"})
        assert dashboard.status_code == 200
        body = dashboard.json()
        assert body["totalThisMonth"] == 42.5
        assert body["categoryBreakdown"] == {"food": 42.5}
        assert body["monthlyData"][-1] == {"month": "Mar 2024", "amount": 42.5}
        assert len(body["monthlyData"]) == 6
        assert len(body["recentExpenses"]) == 1

    def test_defaults_to_today(self, client):
        add_expense(client, date="2024-03-02")
        body = client.get("/dashboard", params={"userId": USER}).json()
        assert body["totalThisMonth"] == 42.5

    def test_empty_user(self, client):
        body = client.get("/dashboard", params={"userId": "John Doe"}).json()
        assert body["totalThisMonth"] == 0
        assert body["categoryBreakdown"] == {}
        assert body["recentExpenses"] == []
        assert all(point["amount"] == 0 for point in body["monthlyData"])

    def test_recent_is_capped(self, client):
        for day in range(1, 8):
            add_expense(client, date=f"2024-03-0{day}")
        body = client.get("/dashboard", params={"userId": USER}).json()
        assert [e["date"] for e in body["recentExpenses"]] == [
            "2024-03-07", "2024-03-06", "2024-03-05", "2024-03-04", "2024-03-03",
        ]

    def test_requires_user(self, client):
        assert client.get("/dashboard").status_code == 400


class TestErrors:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "OK"
        assert body["storage"] == "memory"
        assert body["expenses"] == 0

        add_expense(client)
        add_expense(client, userId="John Doe")
        assert client.get("/health").json()["expenses"] == 2

    def test_unknown_endpoint(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Endpoint not found"}

    def test_store_unavailable_is_503(self, client, storage, monkeypatch):
        async def down(*args, **kwargs):
            raise StoreUnavailableError("backend down")

        monkeypatch.setattr(storage, "list_expenses", down)
        response = client.get("/expenses", params={"userId": USER})
        assert response.status_code == 503
        assert response.json()["error"] == "Storage temporarily unavailable"

    def test_unexpected_error_is_500(self, storage, monkeypatch):
        audit_storage = InMemoryAuditStorage()
        settings = Settings()
        components = create_app_components(
            settings,
            expense_storage=storage,
            audit_storage=audit_storage,
            today=lambda: TODAY,
        )

        async def broken(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(storage, "list_expenses", broken)
        app = create_app(settings=settings, components=components)
        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/expenses", params={"userId": USER})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Something broke!"}
        events = run(audit_storage.get_recent_events())
        assert events[0].error_message == "kaboom"
