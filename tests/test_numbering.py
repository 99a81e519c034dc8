from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import sqlalchemy as sa

from invoiceflow.errors import ConflictError
from invoiceflow.models import Invoice, InvoiceStatus
from invoiceflow.services import numbering
from invoiceflow.services.invoices import create_invoice

from .conftest import NOW


def test_format_and_parse():
    assert numbering.format_invoice_number(NOW, 7) == "INV-202610-0007"
    assert numbering.format_invoice_number(datetime(2027, 1, 3), 12345) == "INV-202701-12345"
    assert numbering.parse_sequence("INV-202610-0042") == 42


@pytest.mark.parametrize("bad", [None, "", "INV", "INV-202610-abcd"])
def test_parse_sequence_rejects_garbage(bad):
    with pytest.raises(ValueError):
        numbering.parse_sequence(bad)


def test_first_number_of_the_month(app):
    assert numbering.next_invoice_number(NOW) == "INV-202610-0001"


def test_numbers_increase_by_one(make_user, invoice_data):
    user = make_user()
    numbers = [create_invoice(user, invoice_data(), now=NOW).invoice_number for _ in range(3)]

    assert numbers == ["INV-202610-0001", "INV-202610-0002", "INV-202610-0003"]


def test_sequence_is_shared_by_all_users(make_user, invoice_data):
    alice, bob = make_user(), make_user()

    first = create_invoice(alice, invoice_data(), now=NOW)
    second = create_invoice(bob, invoice_data(), now=NOW)

    assert first.invoice_number == "INV-202610-0001"
    assert second.invoice_number == "INV-202610-0002"


def test_sequence_restarts_each_month(make_user, invoice_data):
    user = make_user()
    create_invoice(user, invoice_data(), now=NOW)
    create_invoice(user, invoice_data(), now=NOW)

    november = datetime(2026, 11, 2, 9, 30)
    invoice = create_invoice(user, invoice_data(due_date=november + timedelta(days=14)), now=november)

    assert invoice.invoice_number == "INV-202611-0001"


def test_collision_is_retried_with_a_fresh_number(db, make_user, invoice_data, monkeypatch):
    user = make_user()
    taken = create_invoice(user, invoice_data(), now=NOW).invoice_number

    real_next = numbering.next_invoice_number
    calls = []

    def stale_first(now=None):
        # Simulates a concurrent writer that grabbed the number between our
        # read and our insert.
        calls.append(now)
        return taken if len(calls) == 1 else real_next(now)

    monkeypatch.setattr(numbering, "next_invoice_number", stale_first)

    invoice = create_invoice(user, invoice_data(), now=NOW)

    assert len(calls) == 2
    assert invoice.invoice_number == "INV-202610-0002"
    assert db.session.execute(sa.select(sa.func.count(Invoice.id))).scalar() == 2
    assert user.invoice_count == 2


def test_gives_up_after_max_attempts(app, db, make_user, invoice_data, monkeypatch):
    app.config["INVOICE_NUMBER_MAX_ATTEMPTS"] = 3
    user = make_user()
    taken = create_invoice(user, invoice_data(), now=NOW).invoice_number

    calls = []

    def always_taken(now=None):
        calls.append(now)
        return taken

    monkeypatch.setattr(numbering, "next_invoice_number", always_taken)

    with pytest.raises(ConflictError) as exc:
        create_invoice(user, invoice_data(), now=NOW)

    assert exc.value.code == "INVOICE_NUMBER_CONFLICT"
    assert len(calls) == 3
    # Nothing from the failed attempt was kept, including the usage counter.
    assert db.session.execute(sa.select(sa.func.count(Invoice.id))).scalar() == 1
    assert user.invoice_count == 1


def test_preassigned_number_is_never_replaced(db, make_user, invoice_data, monkeypatch):
    user = make_user()
    taken = create_invoice(user, invoice_data(), now=NOW).invoice_number

    def must_not_be_called(now=None):
        raise AssertionError("a preassigned number must be kept")

    monkeypatch.setattr(numbering, "next_invoice_number", must_not_be_called)

    duplicate = Invoice(
        user_id=user.id,
        invoice_number=taken,
        client_name="Someone",
        client_email="someone@example.com",
        status=InvoiceStatus.DRAFT,
        issue_date=NOW,
        due_date=NOW + timedelta(days=7),
    )
    with pytest.raises(ConflictError):
        numbering.insert_with_number(duplicate, NOW)
    db.session.rollback()

    assert duplicate.invoice_number == taken


def test_racing_creations_all_get_distinct_numbers(make_user, invoice_data, monkeypatch):
    users = [make_user() for _ in range(3)]
    taken = create_invoice(users[0], invoice_data(), now=NOW).invoice_number

    real_next = numbering.next_invoice_number
    calls = []

    def every_first_attempt_collides(now=None):
        calls.append(now)
        return taken if len(calls) % 2 == 1 else real_next(now)

    monkeypatch.setattr(numbering, "next_invoice_number", every_first_attempt_collides)

    created = [create_invoice(users[i % 3], invoice_data(), now=NOW) for i in range(6)]
    numbers = [taken] + [inv.invoice_number for inv in created]

    assert len(set(numbers)) == 7
    assert [numbering.parse_sequence(n) for n in numbers] == list(range(1, 8))


def test_sequence_keeps_climbing_past_9999(db, make_user, invoice_data):
    user = make_user()
    invoice = create_invoice(user, invoice_data(), now=NOW)
    invoice.invoice_number = "INV-202610-9999"
    db.session.commit()

    numbers = [create_invoice(user, invoice_data(), now=NOW).invoice_number for _ in range(2)]

    assert numbers == ["INV-202610-10000", "INV-202610-10001"]
    assert numbering.last_invoice_number(NOW) == "INV-202610-10001"
