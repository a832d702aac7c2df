import io
import json

from app.nexus.constants import ROLE_SUPER_ADMIN, ROLE_VIEWER

from conftest import CUSTOMER


def _seed_tenant(client):
    cid = client.post("/api/customers", json=CUSTOMER).json["data"]["id"]
    client.post(
        "/api/cylinders",
        json={
            "customer_id": cid,
            "direction": "DELIVERED",
            "cylinder_label": "11.8kg",
            "quantity": 2,
            "unit_price": 1000,
            "delivery_date": "2024-04-05",
        },
    )
    bill_id = client.post(
        "/api/bills", json={"customer_id": cid, "start_date": "2024-04-01", "end_date": "2024-04-30"}
    ).json["data"]["id"]
    client.post("/api/payments", json={"bill_id": bill_id, "amount": 500, "method": "Cash"})
    client.put(
        "/api/notes/2024-04-05",
        json={"labels": ["ops"], "sections": [{"id": "s1", "title": "Ops", "content": "Truck late"}]},
    )
    return cid, bill_id


def test_generate_backup_document(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    _seed_tenant(client)

    r = client.get("/api/backup/generate")
    assert r.status_code == 200
    assert r.headers["Content-Disposition"].startswith('attachment; filename="backup-')
    doc = json.loads(r.data)
    assert doc["version"]
    assert len(doc["data"]["customers"]) == 1
    assert len(doc["data"]["payments"]) == 1
    assert "users" not in doc["data"]
    assert "otps" not in doc["data"]

    history = client.get("/api/backup/history").json["data"]["items"]
    assert [h["kind"] for h in history] == ["BACKUP"]


def test_restore_remaps_ids(client, make_user, login):
    make_user("a@example.com")
    make_user("b@example.com")
    login(client, "a@example.com")
    _seed_tenant(client)
    doc = json.loads(client.get("/api/backup/generate").data)

    client.post("/api/auth/logout")
    login(client, "b@example.com")
    client.post("/api/customers", json={**CUSTOMER, "name": "To Be Replaced"})

    r = client.post("/api/backup/restore", json={"document": doc, "file_name": "a.json"})
    assert r.status_code == 200
    result = r.json["data"]
    assert result["deleted"]["customers"] == 1
    assert result["restored"]["customers"] == 1
    assert result["restored"]["payments"] == 1
    assert result["restored"]["daily_notes"] == 1

    customers = client.get("/api/customers").json["data"]["items"]
    assert [c["name"] for c in customers] == [CUSTOMER["name"]]
    bills = client.get("/api/bills").json["data"]["items"]
    assert len(bills) == 1
    assert bills[0]["customer_id"] == customers[0]["id"]
    assert bills[0]["paid_amount"] == 500

    # the source tenant is untouched
    client.post("/api/auth/logout")
    login(client, "a@example.com")
    assert client.get("/api/customers").json["data"]["total"] == 1


def test_restore_skips_orphans(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    doc = {
        "version": json.loads(client.get("/api/backup/generate").data)["version"],
        "data": {
            "bills": [
                {
                    "id": 1,
                    "customer_id": 42,
                    "bill_start_date": "2024-04-01",
                    "bill_end_date": "2024-04-30",
                    "last_month_remaining": 0,
                    "current_month_bill": 0,
                    "cylinders": 0,
                }
            ],
            "users": [{"id": 1, "email": "ignored@example.com"}],
        },
    }
    r = client.post("/api/backup/restore", json=doc)
    assert r.status_code == 200
    assert r.json["data"]["skipped"]["bills"] == 1


def test_restore_from_upload(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    _seed_tenant(client)
    raw = client.get("/api/backup/generate").data
    r = client.post(
        "/api/backup/restore",
        data={"file": (io.BytesIO(raw), "backup.json")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 200
    assert r.json["data"]["restored"]["cylinder_entries"] == 1


def test_restore_rejects_bad_document(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    r = client.post("/api/backup/restore", json={"version": "0", "data": []})
    assert r.status_code == 400
    r = client.post(
        "/api/backup/restore",
        data={"file": (io.BytesIO(b"{not json"), "backup.json")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 400


def test_super_admin_restore_requires_target(client, make_user, login):
    make_user("a@example.com")
    make_user("root@example.com", role=ROLE_SUPER_ADMIN)
    login(client, "root@example.com")
    doc = json.loads(client.get("/api/backup/generate").data)
    r = client.post("/api/backup/restore", json={"document": doc})
    assert r.status_code == 400
    assert "admin_id" in r.json["error"]


def test_viewer_cannot_reach_backup(client, make_user, login):
    admin_id = make_user("a@example.com")
    make_user("viewer@example.com", role=ROLE_VIEWER, admin_id=admin_id)
    login(client, "viewer@example.com")
    assert client.get("/api/backup/generate").status_code == 403


def test_automatic_backup_token(client, app, make_user):
    make_user("a@example.com")
    make_user("b@example.com")
    assert client.get("/api/backup/automatic").json["data"] == {"configured": False}
    assert client.post("/api/backup/automatic").status_code == 403

    app.config["BACKUP_CRON_TOKEN"] = "cron-secret"
    assert client.post("/api/backup/automatic", headers={"Authorization": "Bearer wrong"}).status_code == 401
    r = client.post("/api/backup/automatic", headers={"Authorization": "Bearer cron-secret"})
    assert r.status_code == 200
    assert r.json["data"]["count"] == 2
    assert all(b["file_name"].startswith("auto-backup-") for b in r.json["data"]["backups"])
