import datetime as dt

from models import Goal, Transaction


def test_create_transaction(client):
    payload = {
        "type": "expense",
        "category": "Food & Dining",
        "amount": 42.5,
        "date": "2025-01-01",
        "description": "for testing",
    }
    res = client.post("/api/transactions", json=payload)
    assert res.status_code == 201

    data = res.json()
    assert data["id"] > 0
    assert data["type"] == "expense"
    assert data["category"] == "Food & Dining"
    assert data["amount"] == 42.5
    assert data["date"] == "2025-01-01"
    assert data["icon"] == "🍔"
    assert data["color"] == "#ef4444"
    assert data["created_at"]


def test_create_transaction_unknown_category_uses_fallback(client):
    res = client.post(
        "/api/transactions",
        json={"type": "expense", "category": "Pets", "amount": 10, "date": "2025-01-01"},
    )
    assert res.status_code == 201
    assert res.json()["icon"] == "💰"
    assert res.json()["color"] == "#6366f1"


def test_create_transaction_missing_fields(client):
    res = client.post("/api/transactions", json={"type": "income", "amount": 10})
    assert res.status_code == 400
    detail = res.json()["detail"]
    assert "category" in detail
    assert "date" in detail


def test_create_transaction_bad_type(client):
    res = client.post(
        "/api/transactions",
        json={"type": "transfer", "category": "Salary", "amount": 10, "date": "2025-01-01"},
    )
    assert res.status_code == 400
    assert "type" in res.json()["detail"]


def test_create_transaction_negative_amount(client):
    res = client.post(
        "/api/transactions",
        json={"type": "expense", "category": "Shopping", "amount": -10.0, "date": "2025-01-01"},
    )
    assert res.status_code == 400


def test_list_transactions_newest_first(client, api_helpers):
    add = api_helpers["add_transaction"]
    first = add("income", 1000, "2025-01-05", "Salary")
    second = add("expense", 20, "2025-01-10", "Shopping")
    third = add("expense", 30, "2025-01-10", "Shopping")

    res = client.get("/api/transactions")
    assert res.status_code == 200
    ids = [row["id"] for row in res.json()]
    assert ids == [third["id"], second["id"], first["id"]]


def test_list_transactions_filters(client, api_helpers):
    add = api_helpers["add_transaction"]
    add("income", 1000, "2025-01-05", "Salary")
    add("expense", 20, "2025-01-10", "Shopping")
    add("expense", 30, "2025-02-10", "Shopping")

    res = client.get("/api/transactions", params={"type": "expense"})
    assert [row["amount"] for row in res.json()] == [30.0, 20.0]

    res = client.get("/api/transactions", params={"month": "2025-01"})
    assert len(res.json()) == 2

    res = client.get("/api/transactions", params={"limit": 1})
    assert len(res.json()) == 1


def test_list_transactions_bad_month(client):
    res = client.get("/api/transactions", params={"month": "January"})
    assert res.status_code == 400
    assert "YYYY-MM" in res.json()["detail"]


def test_delete_transaction(client, api_helpers):
    row = api_helpers["add_transaction"]("expense", 75.0, "2025-01-03")

    res_del = client.delete(f"/api/transactions/{row['id']}")
    assert res_del.status_code == 204

    ids = [r["id"] for r in client.get("/api/transactions").json()]
    assert row["id"] not in ids


def test_delete_transaction_not_found(client):
    res = client.delete("/api/transactions/999999")
    assert res.status_code == 404


def test_list_transactions_type_and_month_in_query(client, api_helpers):
    add = api_helpers["add_transaction"]
    add("expense", 10, "2025-01-31", "Shopping")
    add("expense", 20, "2025-02-01", "Shopping")
    add("income", 30, "2025-01-15", "Salary")

    res = client.get("/api/transactions", params={"type": "expense", "month": "2025-01"})
    assert res.status_code == 200
    rows = res.json()
    assert [(r["date"], r["amount"]) for r in rows] == [("2025-01-31", 10.0)]


def test_list_transactions_last_possible_month(client):
    res = client.get("/api/transactions", params={"month": "9999-12"})
    assert res.status_code == 200
    assert res.json() == []


def test_created_rows_get_utc_timestamps(client, api_helpers):
    assert Transaction(type="income", category="Salary", amount=1, date=dt.date(2025, 1, 1)).created_at.tzinfo is not None
    assert Goal(name="Trip", target_amount=1).created_at.tzinfo is not None

    tx = api_helpers["add_transaction"]("income", 5, "2025-01-01", "Salary")
    goal = api_helpers["add_goal"]("Rainy day", 100)

    rows = client.get("/api/transactions").json()
    assert rows[0]["id"] == tx["id"]
    assert rows[0]["created_at"]
    assert client.get(f"/api/goals/{goal['id']}").json()["created_at"]
