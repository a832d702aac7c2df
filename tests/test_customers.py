from app.nexus.constants import ROLE_STAFF, ROLE_SUPER_ADMIN
from app.nexus.modules.customers.service import validate_customer_payload

from conftest import CUSTOMER


def test_validate_customer_payload_ok():
    assert validate_customer_payload(CUSTOMER) == []


def test_validate_customer_payload_errors():
    errors = validate_customer_payload({**CUSTOMER, "contact_number": "12345", "address": "abc"})
    assert "Phone number must be exactly 11 digits." in errors
    assert "address must be 5-200 characters." in errors


def test_contact_required():
    payload = {k: v for k, v in CUSTOMER.items() if k != "contact_number"}
    assert "At least one contact number is required." in validate_customer_payload(payload)


def test_partial_payload_only_checks_given_fields():
    assert validate_customer_payload({"city": "Karachi"}, partial=True) == []


def test_customer_codes_are_sequential_per_tenant(client, make_user, login):
    make_user("a@example.com")
    make_user("b@example.com")
    login(client, "a@example.com")
    codes = [client.post("/api/customers", json=CUSTOMER).json["data"]["customer_code"] for _ in range(2)]
    assert codes == [1, 2]

    client.post("/api/auth/logout")
    login(client, "b@example.com")
    r = client.post("/api/customers", json=CUSTOMER)
    assert r.json["data"]["customer_code"] == 1


def test_first_additional_contact_becomes_primary(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    payload = {**CUSTOMER, "additional_contacts": [{"name": "Bilal", "contact_number": "03111111111"}]}
    r = client.post("/api/customers", json=payload)
    assert r.status_code == 201
    assert r.json["data"]["contact_number"] == "03111111111"


def test_list_search_and_filter(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    client.post("/api/customers", json=CUSTOMER)
    client.post(
        "/api/customers",
        json={**CUSTOMER, "name": "Zafar Gas", "contact_number": "03009999999", "status": "INACTIVE"},
    )

    r = client.get("/api/customers?q=zafar")
    assert [c["name"] for c in r.json["data"]["items"]] == ["Zafar Gas"]
    r = client.get("/api/customers?q=0300999")
    assert [c["customer_code"] for c in r.json["data"]["items"]] == [2]
    r = client.get("/api/customers?status=active")
    assert r.json["data"]["total"] == 1


def test_update_and_delete(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    cid = client.post("/api/customers", json=CUSTOMER).json["data"]["id"]

    r = client.patch(f"/api/customers/{cid}", json={"city": "Karachi", "security_deposit": 1500})
    assert r.status_code == 200
    assert r.json["data"]["city"] == "Karachi"
    assert r.json["data"]["security_deposit"] == 1500

    assert client.patch(f"/api/customers/{cid}", json={"contact_number": "123"}).status_code == 400

    assert client.delete(f"/api/customers/{cid}").status_code == 200
    assert client.get(f"/api/customers/{cid}").status_code == 404


def test_staff_creates_in_parent_tenant(client, make_user, login):
    admin_id = make_user("a@example.com")
    make_user("staff@example.com", role=ROLE_STAFF, admin_id=admin_id)
    login(client, "staff@example.com")
    r = client.post("/api/customers", json=CUSTOMER)
    assert r.status_code == 201
    assert r.json["data"]["admin_id"] == admin_id


def test_super_admin_names_tenant(client, make_user, login):
    make_user("first@example.com")
    second = make_user("second@example.com")
    make_user("root@example.com", role=ROLE_SUPER_ADMIN)
    login(client, "root@example.com")
    r = client.post("/api/customers", json={**CUSTOMER, "admin_id": second})
    assert r.json["data"]["admin_id"] == second
    assert client.post("/api/customers", json={**CUSTOMER, "admin_id": "x"}).status_code == 400
    # sees every tenant
    assert client.get("/api/customers").json["data"]["total"] == 1


def test_invalid_json_body(client, make_user, login):
    make_user("a@example.com")
    login(client, "a@example.com")
    r = client.post("/api/customers", data="nope", content_type="application/json")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid JSON body"


def test_non_string_fields_are_rejected(client, make_user, login):
    make_user("owner@example.com")
    login(client, "owner@example.com")
    r = client.post("/api/customers", json={**CUSTOMER, "name": 123})
    assert r.status_code == 400
    assert r.json["error"] == "name must be a string."
    r = client.post("/api/customers", json={**CUSTOMER, "contact_number": 3001234567})
    assert r.status_code == 400
    assert client.get("/api/customers").json["data"]["total"] == 0
