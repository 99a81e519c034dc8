from __future__ import annotations

from datetime import timedelta

from invoiceflow.models import utcnow_naive

from .conftest import PASSWORD


def _payload(**overrides):
    data = {
        "client_name": "Acme Corp",
        "client_email": "billing@acme.example",
        "items": [{"description": "Consulting", "quantity": 3, "unit_price": 19.99}],
        "tax_rate": 8.5,
        "due_date": (utcnow_naive() + timedelta(days=30)).isoformat(),
    }
    data.update(overrides)
    return data


def test_health(client):
    assert client.get("/health").get_json() == {"status": "OK"}


def test_register_logs_the_user_in(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "Ada", "email": "ada@example.com", "password": "secret123"},
    )
    assert resp.status_code == 201
    assert resp.get_json()["user"]["monthly_invoice_limit"] == 5

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.get_json()["user"]["email"] == "ada@example.com"


def test_register_twice(client):
    body = {"name": "Ada", "email": "ada@example.com", "password": "secret123"}
    client.post("/api/auth/register", json=body)

    resp = client.post("/api/auth/register", json=body)

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "USER_EXISTS"


def test_login_with_bad_password(client, make_user):
    user = make_user()

    resp = client.post("/api/auth/login", json={"email": user.email, "password": "wrong-password"})

    assert resp.status_code == 401
    assert resp.get_json()["error"] == "INVALID_CREDENTIALS"


def test_invoices_need_a_session(client):
    resp = client.get("/api/invoices")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "NO_AUTH"


def test_create_and_fetch_invoice(client, login):
    login()

    resp = client.post("/api/invoices", json=_payload(total=1))
    assert resp.status_code == 201
    invoice = resp.get_json()["invoice"]
    assert invoice["total"] == 65.07
    assert invoice["status"] == "draft"
    assert invoice["is_overdue"] is False
    assert invoice["invoice_number"].startswith("INV-")

    fetched = client.get(f"/api/invoices/{invoice['id']}").get_json()["invoice"]
    assert fetched["items"][0]["total"] == 59.97


def test_validation_errors_name_the_field(client, login):
    login()

    resp = client.post(
        "/api/invoices",
        json=_payload(items=[{"description": "Widget", "quantity": 1, "unit_price": -5}]),
    )

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"][0]["field"] == "items[0].unit_price"


def test_cross_user_access_is_forbidden(client, login):
    login()
    invoice_id = client.post("/api/invoices", json=_payload()).get_json()["invoice"]["id"]
    client.post("/api/auth/logout")

    login()
    resp = client.get(f"/api/invoices/{invoice_id}")

    assert resp.status_code == 403
    assert resp.get_json()["error"] == "ACCESS_DENIED"


def test_unknown_invoice(client, login):
    login()
    resp = client.get("/api/invoices/4242")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "INVOICE_NOT_FOUND"


def test_quota_reached_over_http(client, login):
    login(monthly_invoice_limit=1, last_invoice_reset=utcnow_naive())
    assert client.post("/api/invoices", json=_payload()).status_code == 201

    resp = client.post("/api/invoices", json=_payload())

    assert resp.status_code == 403
    assert resp.get_json()["error"] == "INVOICE_LIMIT_REACHED"
    assert resp.get_json()["details"] == {"current_count": 1, "limit": 1}


def test_status_transitions_over_http(client, login):
    login()
    invoice_id = client.post("/api/invoices", json=_payload()).get_json()["invoice"]["id"]

    assert client.post(f"/api/invoices/{invoice_id}/send").get_json()["invoice"]["status"] == "sent"
    assert client.post(f"/api/invoices/{invoice_id}/mark-paid").get_json()["invoice"]["status"] == "paid"

    resp = client.post(f"/api/invoices/{invoice_id}/cancel")
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "INVALID_STATUS_TRANSITION"


def test_stats_endpoint(client, login):
    login()
    for price in (100, 200):
        client.post(
            "/api/invoices",
            json=_payload(items=[{"description": "Work", "quantity": 1, "unit_price": price}], tax_rate=0),
        )

    stats = client.get("/api/invoices/stats").get_json()["stats"]

    assert stats["by_status"] == {"draft": {"count": 2, "total_amount": 300.0}}
    assert stats["totals"] == {"invoices": 2, "amount": 300.0}


def test_client_endpoints(client, login):
    login()
    resp = client.post("/api/clients", json={"name": "Acme Corp", "email": "billing@acme.example"})
    assert resp.status_code == 201
    client_id = resp.get_json()["client"]["id"]

    dup = client.post("/api/clients", json={"name": "Acme", "email": "billing@acme.example"})
    assert dup.status_code == 409
    assert dup.get_json()["error"] == "DUPLICATE_CLIENT_EMAIL"

    client.post("/api/invoices", json=_payload())
    refreshed = client.post(f"/api/clients/{client_id}/update-stats").get_json()["client"]
    assert refreshed["invoice_count"] == 1
    assert refreshed["total_invoiced"] == 65.07

    blocked = client.delete(f"/api/clients/{client_id}")
    assert blocked.status_code == 409
    assert blocked.get_json()["error"] == "CLIENT_HAS_INVOICES"


def test_update_profile(client, login):
    login()

    resp = client.put("/api/auth/profile", json={"name": "  Ada Lovelace ", "email": "other@example.com"})
    assert resp.status_code == 200
    user = resp.get_json()["user"]
    assert user["name"] == "Ada Lovelace"
    assert user["email"] != "other@example.com"

    blank = client.put("/api/auth/profile", json={"name": "   "})
    assert blank.status_code == 400
    assert blank.get_json()["error"] == "MISSING_NAME"


def test_change_password(client, login):
    user = login()

    missing = client.put("/api/auth/change-password", json={"current_password": PASSWORD})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "MISSING_PASSWORDS"
    assert [d["field"] for d in missing.get_json()["details"]] == ["new_password"]

    short = client.put("/api/auth/change-password", json={"current_password": PASSWORD, "new_password": "abc"})
    assert short.status_code == 400
    assert short.get_json()["error"] == "PASSWORD_TOO_SHORT"

    wrong = client.put(
        "/api/auth/change-password", json={"current_password": "not-it", "new_password": "brand-new-pw"}
    )
    assert wrong.status_code == 401
    assert wrong.get_json()["error"] == "INVALID_CURRENT_PASSWORD"

    ok = client.put(
        "/api/auth/change-password", json={"current_password": PASSWORD, "new_password": "brand-new-pw"}
    )
    assert ok.status_code == 200

    client.post("/api/auth/logout")
    old = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert old.status_code == 401
    new = client.post("/api/auth/login", json={"email": user.email, "password": "brand-new-pw"})
    assert new.status_code == 200


def test_profile_needs_a_session(client):
    assert client.put("/api/auth/profile", json={"name": "x"}).status_code == 401
