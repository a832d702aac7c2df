from app.nexus.modules.expenses.service import expense_category, validate_expense_payload


def test_expense_category():
    assert expense_category("Transportation") == "HOME"
    assert expense_category("Maintenance") == "OTHER"
    assert expense_category("Something new") == "HOME"


def test_custom_type_needs_a_name():
    errors = validate_expense_payload(
        {"expense_type": "CUSTOM", "custom_expense_type": "x", "amount": 10, "expense_date": "2024-05-01"}
    )
    assert errors == ["Please enter a custom expense type (minimum 2 characters)."]


def test_amount_bounds():
    base = {"expense_type": "Utilities", "expense_date": "2024-05-01"}
    assert validate_expense_payload({**base, "amount": 0}) == ["amount must be at least 1."]
    assert validate_expense_payload({**base, "amount": 50_000_001}) == ["amount must be at most 50000000."]
    assert validate_expense_payload({**base, "amount": 50_000_000}) == []


def test_expense_crud_and_totals(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    r = client.post(
        "/api/expenses", json={"expense_type": "Maintenance", "amount": 1200, "expense_date": "2024-05-01"}
    )
    assert r.status_code == 201
    assert r.json["data"]["category"] == "OTHER"
    eid = r.json["data"]["id"]
    client.post("/api/expenses", json={"expense_type": "Utilities", "amount": 800, "expense_date": "2024-05-02"})

    data = client.get("/api/expenses").json["data"]
    assert data["total"] == 2
    assert data["total_amount"] == 2000
    assert client.get("/api/expenses?category=OTHER").json["data"]["total_amount"] == 1200
    assert client.get("/api/expenses?date=2024-05-02").json["data"]["total"] == 1
    assert client.get("/api/expenses?category=WORK").status_code == 400
    assert client.get("/api/expenses?page_size=51").status_code == 400

    r = client.patch(f"/api/expenses/{eid}", json={"amount": 1500})
    assert r.json["data"]["amount"] == 1500
    assert client.delete(f"/api/expenses/{eid}").status_code == 200
    assert client.get("/api/expenses").json["data"]["total_amount"] == 800
