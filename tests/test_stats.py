from __future__ import annotations

from datetime import timedelta

from invoiceflow.models import ClientStatus
from invoiceflow.services import clients, invoices, stats

from .conftest import NOW


def _invoice_for(user, invoice_data, amount, email="billing@acme.example", now=NOW):
    return invoices.create_invoice(
        user,
        invoice_data(
            client_email=email,
            items=[{"description": "Work", "quantity": 1, "unit_price": amount}],
            tax_rate=0,
        ),
        now=now,
    )


def test_invoice_stats_group_by_status(make_user, invoice_data):
    user, other = make_user(), make_user()
    _invoice_for(user, invoice_data, 100)
    for amount in (200, 50):
        invoice = _invoice_for(user, invoice_data, amount)
        invoices.mark_invoice_paid(user.id, invoice.id, now=NOW)
    _invoice_for(other, invoice_data, 999)

    result = stats.get_invoice_stats(user.id)

    assert result["by_status"] == {
        "draft": {"count": 1, "total_amount": 100.0},
        "paid": {"count": 2, "total_amount": 250.0},
    }
    assert result["totals"] == {"invoices": 3, "amount": 350.0}


def test_invoice_stats_for_a_new_user(make_user):
    assert stats.get_invoice_stats(make_user().id) == {
        "by_status": {},
        "totals": {"invoices": 0, "amount": 0.0},
    }


def test_recompute_client_rollups(make_user, invoice_data):
    user = make_user()
    client = clients.create_client(user, {"name": "Acme Corp", "email": "billing@acme.example"})
    _invoice_for(user, invoice_data, 100)
    paid = _invoice_for(user, invoice_data, 40, now=NOW + timedelta(hours=1))
    invoices.mark_invoice_paid(user.id, paid.id, now=NOW + timedelta(days=1))
    _invoice_for(user, invoice_data, 75, email="someone-else@example.com")

    clients.refresh_financial_stats(user.id, client.id)

    assert client.invoice_count == 2
    assert client.total_invoiced == 140.0
    assert client.total_paid == 40.0
    assert client.outstanding_balance == 100.0
    assert client.last_invoice_date == NOW + timedelta(hours=1)
    assert client.last_payment_date == NOW + timedelta(days=1)


def test_recompute_without_invoices_resets_rollups(db, make_user):
    user = make_user()
    client = clients.create_client(user, {"name": "Acme Corp", "email": "billing@acme.example"})
    client.total_invoiced = 500
    client.invoice_count = 3
    db.session.commit()

    clients.refresh_financial_stats(user.id, client.id)

    assert client.total_invoiced == 0.0
    assert client.total_paid == 0.0
    assert client.invoice_count == 0
    assert client.last_invoice_date is None


def test_client_stats_and_outstanding(db, make_user, invoice_data):
    user = make_user()
    big = clients.create_client(user, {"name": "Big", "email": "big@example.com"})
    small = clients.create_client(user, {"name": "Small", "email": "small@example.com"})
    settled = clients.create_client(user, {"name": "Settled", "email": "settled@example.com"})
    dormant = clients.create_client(user, {"name": "Dormant", "email": "dormant@example.com", "status": "inactive"})

    _invoice_for(user, invoice_data, 900, email="big@example.com")
    _invoice_for(user, invoice_data, 10, email="small@example.com")
    done = _invoice_for(user, invoice_data, 300, email="settled@example.com")
    invoices.mark_invoice_paid(user.id, done.id, now=NOW)
    _invoice_for(user, invoice_data, 55, email="dormant@example.com")
    clients.refresh_all_financial_stats(user.id)

    owing = stats.clients_with_outstanding_balance(user.id)
    assert [c.id for c in owing] == [big.id, small.id]

    result = stats.get_client_stats(user.id)
    assert result[ClientStatus.ACTIVE.value] == {"count": 3, "total_invoiced": 1210.0, "total_paid": 300.0}
    assert result[ClientStatus.INACTIVE.value] == {"count": 1, "total_invoiced": 55.0, "total_paid": 0.0}
    assert result["total"] == {
        "count": 4,
        "total_invoiced": 1265.0,
        "total_paid": 300.0,
        "outstanding": 965.0,
    }
    assert settled.id not in [c.id for c in owing]
    assert dormant.id not in [c.id for c in owing]
