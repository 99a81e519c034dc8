from __future__ import annotations

import pytest

from invoiceflow.errors import ConflictError, ForbiddenError, ValidationError
from invoiceflow.models import ClientStatus
from invoiceflow.services import clients, invoices


def _data(**overrides):
    data = {
        "name": "Acme Corp",
        "email": "billing@acme.example",
        "company": "Acme Corporation",
        "address": {"street": "1 Main St", "city": "Springfield", "country": "US"},
    }
    data.update(overrides)
    return data


def test_create_client(make_user):
    user = make_user()

    client = clients.create_client(user, _data(email="  Billing@Acme.Example "))

    assert client.id is not None
    assert client.email == "billing@acme.example"
    assert client.status is ClientStatus.ACTIVE
    assert client.preferred_payment_terms == "Net 30"
    assert client.city == "Springfield"
    assert client.total_invoiced == 0


def test_rollup_fields_cannot_be_written(make_user):
    user = make_user()

    client = clients.create_client(user, _data(total_invoiced=1000, invoice_count=9, user_id=999))

    assert client.total_invoiced == 0
    assert client.invoice_count == 0
    assert client.user_id == user.id


def test_duplicate_email_for_the_same_owner(make_user):
    user = make_user()
    clients.create_client(user, _data())

    with pytest.raises(ConflictError) as exc:
        clients.create_client(user, _data(name="Acme again"))

    assert exc.value.code == "DUPLICATE_CLIENT_EMAIL"


def test_same_email_under_different_owners(make_user):
    first = clients.create_client(make_user(), _data())
    second = clients.create_client(make_user(), _data())
    assert first.id != second.id


def test_update_to_a_taken_email(db, make_user):
    user = make_user()
    clients.create_client(user, _data())
    other = clients.create_client(user, _data(email="other@example.com"))

    with pytest.raises(ConflictError):
        clients.update_client(user.id, other.id, {"email": "billing@acme.example"})

    assert clients.get_client(user.id, other.id).email == "other@example.com"


def test_update_client(make_user):
    user = make_user()
    client = clients.create_client(user, _data())

    clients.update_client(user.id, client.id, {"status": "inactive", "phone": "555-0100", "total_paid": 5})

    assert client.status is ClientStatus.INACTIVE
    assert client.phone == "555-0100"
    assert client.total_paid == 0


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"name": " "}, "name"),
        ({"email": "nope"}, "email"),
        ({"status": "archived"}, "status"),
        ({"preferred_payment_terms": "Net 90"}, "preferred_payment_terms"),
    ],
)
def test_create_validation(make_user, overrides, field):
    with pytest.raises(ValidationError) as exc:
        clients.create_client(make_user(), _data(**overrides))
    assert exc.value.fields == [field]


def test_delete_refused_while_invoices_exist(make_user, invoice_data, now):
    user = make_user()
    client = clients.create_client(user, _data())
    invoice = invoices.create_invoice(user, invoice_data(), now=now)

    with pytest.raises(ConflictError) as exc:
        clients.delete_client(user.id, client.id)
    assert exc.value.code == "CLIENT_HAS_INVOICES"

    invoices.delete_invoice(user.id, invoice.id)
    clients.delete_client(user.id, client.id)


def test_other_owner_cannot_touch_client(make_user):
    client = clients.create_client(make_user(), _data())
    stranger = make_user()

    with pytest.raises(ForbiddenError):
        clients.update_client(stranger.id, client.id, {"name": "Hijacked"})
    with pytest.raises(ForbiddenError):
        clients.delete_client(stranger.id, client.id)


def test_list_clients_search_and_status(make_user):
    user = make_user()
    clients.create_client(user, _data())
    clients.create_client(user, _data(name="Globex", email="ap@globex.example", company=None, status="inactive"))

    found, pagination = clients.list_clients(user.id, search="globex")
    assert [c.name for c in found] == ["Globex"]
    assert pagination["total"] == 1

    active, _ = clients.list_clients(user.id, status="active")
    assert [c.name for c in active] == ["Acme Corp"]
