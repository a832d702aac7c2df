from datetime import date

from app.nexus.modules.payments.service import month_bounds

from conftest import CUSTOMER


def _setup(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    cid = client.post("/api/customers", json=CUSTOMER).json["data"]["id"]
    return cid


def _deliver(client, cid, qty, price, day):
    r = client.post(
        "/api/cylinders",
        json={
            "customer_id": cid,
            "direction": "DELIVERED",
            "cylinder_label": "11.8kg",
            "quantity": qty,
            "unit_price": price,
            "delivery_date": day,
        },
    )
    assert r.status_code == 201


def _bill(client, cid, start, end):
    return client.post("/api/bills", json={"customer_id": cid, "start_date": start, "end_date": end})


def test_month_bounds():
    assert month_bounds(date(2024, 2, 14)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(date(2023, 12, 31)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_bill_totals_from_deliveries(client, make_user, login):
    cid = _setup(client, make_user, login)
    _deliver(client, cid, 2, 3000, "2024-04-05")
    _deliver(client, cid, 1, 3000, "2024-04-20")
    _deliver(client, cid, 5, 3000, "2024-05-02")

    r = _bill(client, cid, "2024-04-01", "2024-04-30")
    assert r.status_code == 201
    bill = r.json["data"]
    assert bill["cylinders"] == 3
    assert bill["current_month_bill"] == 9000
    assert bill["last_month_remaining"] == 0
    assert bill["status"] == "NOT_PAID"
    assert bill["customer_name"] == CUSTOMER["name"]


def test_overlapping_bill_rejected(client, make_user, login):
    cid = _setup(client, make_user, login)
    assert _bill(client, cid, "2024-04-01", "2024-04-30").status_code == 201
    r = _bill(client, cid, "2024-04-15", "2024-05-15")
    assert r.status_code == 400
    assert "already exists" in r.json["error"]


def test_partial_payment_then_overpay_rejected(client, make_user, login):
    cid = _setup(client, make_user, login)
    _deliver(client, cid, 2, 1000, "2024-04-05")
    bill_id = _bill(client, cid, "2024-04-01", "2024-04-30").json["data"]["id"]

    r = client.post("/api/payments", json={"bill_id": bill_id, "amount": 500, "method": "Cash"})
    assert r.status_code == 201
    assert r.json["data"]["bill"]["status"] == "PARTIALLY_PAID"
    assert r.json["data"]["bill"]["remaining_amount"] == 1500

    r = client.post("/api/payments", json={"bill_id": bill_id, "amount": 1501, "method": "Cash"})
    assert r.status_code == 400
    assert r.json["error"] == "Payment amount (Rs 1,501) cannot exceed remaining amount (Rs 1,500)."

    r = client.post("/api/payments", json={"bill_id": bill_id, "amount": 1500, "method": "Bank"})
    assert r.json["data"]["bill"]["status"] == "PAID"

    events = [e["event_type"] for e in client.get("/api/payment-logs").json["data"]["items"]]
    assert events == ["PAYMENT_RECEIVED", "PARTIAL_PAYMENT", "BILL_GENERATED"]


def test_remaining_carried_into_next_bill(client, make_user, login):
    cid = _setup(client, make_user, login)
    _deliver(client, cid, 2, 1000, "2024-04-05")
    _deliver(client, cid, 1, 1000, "2024-05-05")
    april = _bill(client, cid, "2024-04-01", "2024-04-30").json["data"]
    client.post("/api/payments", json={"bill_id": april["id"], "amount": 800, "method": "Cash"})

    may = _bill(client, cid, "2024-05-01", "2024-05-31").json["data"]
    assert may["last_month_remaining"] == 1200
    assert may["current_month_bill"] == 1000
    assert may["total_amount"] == 2200


def test_delete_payment_restores_balance(client, make_user, login):
    cid = _setup(client, make_user, login)
    _deliver(client, cid, 1, 1000, "2024-04-05")
    bill_id = _bill(client, cid, "2024-04-01", "2024-04-30").json["data"]["id"]
    r = client.post("/api/payments", json={"bill_id": bill_id, "amount": 1000, "method": "Cash"})
    pid = r.json["data"]["payment"]["id"]

    r = client.delete(f"/api/payments/{pid}")
    assert r.status_code == 200
    assert r.json["data"]["bill"]["remaining_amount"] == 1000
    assert r.json["data"]["bill"]["status"] == "NOT_PAID"


def test_resync_picks_up_new_deliveries(client, make_user, login):
    cid = _setup(client, make_user, login)
    _deliver(client, cid, 1, 1000, "2024-04-05")
    bill_id = _bill(client, cid, "2024-04-01", "2024-04-30").json["data"]["id"]
    _deliver(client, cid, 1, 500, "2024-04-06")
    r = client.post(f"/api/bills/{bill_id}/resync")
    assert r.json["data"]["current_month_bill"] == 1500
    events = [e["event_type"] for e in client.get("/api/payment-logs?event_type=BILL_UPDATED").json["data"]["items"]]
    assert events == ["BILL_UPDATED"]


def test_delete_bill_keeps_log(client, make_user, login):
    cid = _setup(client, make_user, login)
    bill_id = _bill(client, cid, "2024-04-01", "2024-04-30").json["data"]["id"]
    assert client.delete(f"/api/bills/{bill_id}").status_code == 200
    assert client.get(f"/api/bills/{bill_id}").status_code == 404
    logs = client.get("/api/payment-logs").json["data"]["items"]
    assert [l["event_type"] for l in logs] == ["BILL_DELETED", "BILL_GENERATED"]
    assert all(l["bill_id"] is None for l in logs)


def test_payment_validation(client, make_user, login):
    _setup(client, make_user, login)
    r = client.post("/api/payments", json={"bill_id": 1, "amount": 0})
    assert r.status_code == 400
    assert "Payment method is required." in r.json["details"]
