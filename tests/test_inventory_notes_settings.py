from app.nexus.constants import ROLE_STAFF, ROLE_SUPER_ADMIN


def _owner(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")


def test_inventory_receipt_with_several_lines(client, make_user, login):
    _owner(client, make_user, login)
    r = client.post(
        "/api/inventory",
        json={
            "vendor": "Pak Gas",
            "received_by": "Imran",
            "entry_date": "2024-05-03",
            "entries": [
                {"cylinder_type": "11.8kg", "category": "Filled", "quantity": 20, "unit_price": 2800},
                {"cylinder_type": "45.4kg", "category": "Filled", "quantity": 4, "unit_price": 10500},
            ],
        },
    )
    assert r.status_code == 201
    assert len(r.json["data"]["items"]) == 2
    assert client.get("/api/inventory").json["data"]["total"] == 2

    item_id = r.json["data"]["items"][0]["id"]
    assert client.delete(f"/api/inventory/{item_id}").status_code == 200


def test_inventory_single_line_and_errors(client, make_user, login):
    _owner(client, make_user, login)
    r = client.post(
        "/api/inventory",
        json={
            "vendor": "Pak Gas",
            "received_by": "Imran",
            "cylinder_type": "11.8kg",
            "category": "Empty",
            "quantity": 3,
        },
    )
    assert r.status_code == 201
    r = client.post("/api/inventory", json={"vendor": "Pak Gas", "received_by": "Imran", "entries": [{"quantity": 0}]})
    assert r.status_code == 400


def test_note_upsert_per_date(client, make_user, login):
    _owner(client, make_user, login)
    r = client.get("/api/notes/2024-05-01")
    assert r.json["data"]["exists"] is False
    assert r.json["data"]["sections"] == []

    sections = [{"id": "morning", "title": "Morning", "content": "Stock check"}]
    assert client.put("/api/notes/2024-05-01", json={"sections": sections, "labels": ["ops"]}).status_code == 200
    sections[0]["content"] = "Stock check done"
    r = client.put("/api/notes/2024-05-01", json={"sections": sections})
    assert r.json["data"]["character_count"] == len("Stock check done")

    r = client.get("/api/notes/2024-05-01")
    assert r.json["data"]["exists"] is True
    assert client.get("/api/notes").json["data"]["total"] == 1


def test_note_validation(client, make_user, login):
    _owner(client, make_user, login)
    sections = [{"id": "a", "title": "A"}]
    r = client.put("/api/notes/2024-05-01", json={"sections": sections, "labels": list("abcdef")})
    assert r.status_code == 400
    assert client.get("/api/notes/not-a-date").status_code == 400


def test_settings_defaults_and_update(client, make_user, login):
    _owner(client, make_user, login)
    data = client.get("/api/settings").json["data"]
    assert data["software_name"] == "LPG Nexus"
    assert data["currency"] == "PKR"

    r = client.put("/api/settings", json={"software_name": "Ali Gas", "bill_footer": "  "})
    assert r.status_code == 200
    assert r.json["data"]["software_name"] == "Ali Gas"
    assert r.json["data"]["bill_footer"] is None
    assert client.get("/api/settings").json["data"]["software_name"] == "Ali Gas"

    assert client.put("/api/settings", json={"theme": "dark"}).status_code == 400


def test_staff_without_settings_access(client, make_user, login):
    admin_id = make_user("a@example.com")
    make_user("staff@example.com", role=ROLE_STAFF, admin_id=admin_id)
    login(client, "staff@example.com")
    assert client.get("/api/settings").status_code == 403


def test_reports_overview(client, make_user, login):
    from conftest import CUSTOMER

    _owner(client, make_user, login)
    cid = client.post("/api/customers", json=CUSTOMER).json["data"]["id"]
    for direction, qty in (("DELIVERED", 5), ("RECEIVED", 2)):
        client.post(
            "/api/cylinders",
            json={
                "customer_id": cid,
                "direction": direction,
                "cylinder_label": "11.8kg",
                "quantity": qty,
                "unit_price": 1000,
                "delivery_date": "2024-05-10",
            },
        )
    client.post("/api/expenses", json={"expense_type": "Utilities", "amount": 700, "expense_date": "2024-05-11"})

    r = client.get("/api/reports/overview?from=2024-05-01&to=2024-05-31")
    totals = r.json["data"]["totals"]
    assert totals["cylinders_delivered"] == 5
    assert totals["cylinders_received"] == 2
    assert totals["cylinders_outstanding"] == 3
    assert totals["sales"] == 5000
    assert totals["expenses"] == 700
    assert len(r.json["data"]["usage"]) == 6
    assert client.get("/api/reports/overview?from=2024-05-31&to=2024-05-01").status_code == 400


def test_super_admin_reads_tenant_settings(client, make_user, login):
    admin_id = make_user("a@example.com")
    login(client, "a@example.com")
    client.put("/api/settings", json={"currency": "USD"})
    client.post("/api/auth/logout")

    make_user("root@example.com", role=ROLE_SUPER_ADMIN)
    login(client, "root@example.com")
    assert client.get(f"/api/settings?admin_id={admin_id}").json["data"]["currency"] == "USD"
    assert client.get("/api/settings").json["data"]["admin_id"] is None
