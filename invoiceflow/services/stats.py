# invoiceflow/services/stats.py
"""
Read-only rollups over a user's invoices and clients.

The only write in here is recompute_client_rollups, which refreshes the
cached figures stored on a Client from the invoice table.
"""
from __future__ import annotations

from decimal import Decimal

import sqlalchemy as sa

from invoiceflow.extensions import db
from invoiceflow.models import Client, ClientStatus, Invoice, InvoiceStatus

from .pricing import round2


def _money(value) -> Decimal:
    return Decimal(str(value or 0))


def get_invoice_stats(owner_id: int) -> dict:
    """
    {
      "by_status": {"paid": {"count": 2, "total_amount": 250.0}, ...},
      "totals": {"invoices": 3, "amount": 350.0},
    }

    Statuses with no invoices are left out of ``by_status``.
    """
    rows = db.session.execute(
        sa.select(Invoice.status, Invoice.total).where(Invoice.user_id == owner_id)
    ).all()

    grouped: dict[InvoiceStatus, list] = {}
    for status, total in rows:
        bucket = grouped.setdefault(status, [0, Decimal("0")])
        bucket[0] += 1
        bucket[1] += _money(total)

    by_status = {
        status.value: {"count": count, "total_amount": round2(amount)}
        for status, (count, amount) in grouped.items()
    }
    return {
        "by_status": by_status,
        "totals": {
            "invoices": sum(count for count, _ in grouped.values()),
            "amount": round2(sum((amount for _, amount in grouped.values()), Decimal("0"))),
        },
    }


def get_client_stats(owner_id: int) -> dict:
    clients = db.session.execute(sa.select(Client).where(Client.user_id == owner_id)).scalars().all()

    sums = {
        status: {"count": 0, "total_invoiced": Decimal("0"), "total_paid": Decimal("0")}
        for status in ClientStatus
    }
    for client in clients:
        bucket = sums[client.status]
        bucket["count"] += 1
        bucket["total_invoiced"] += _money(client.total_invoiced)
        bucket["total_paid"] += _money(client.total_paid)

    result = {}
    total_count = 0
    total_invoiced = Decimal("0")
    total_paid = Decimal("0")
    for status, bucket in sums.items():
        result[status.value] = {
            "count": bucket["count"],
            "total_invoiced": round2(bucket["total_invoiced"]),
            "total_paid": round2(bucket["total_paid"]),
        }
        total_count += bucket["count"]
        total_invoiced += bucket["total_invoiced"]
        total_paid += bucket["total_paid"]

    result["total"] = {
        "count": total_count,
        "total_invoiced": round2(total_invoiced),
        "total_paid": round2(total_paid),
        "outstanding": round2(total_invoiced - total_paid),
    }
    return result


def clients_with_outstanding_balance(owner_id: int) -> list[Client]:
    """Active clients that still owe money, largest balance first."""
    outstanding = Client.total_invoiced - Client.total_paid
    stmt = (
        sa.select(Client)
        .where(
            Client.user_id == owner_id,
            Client.status == ClientStatus.ACTIVE,
            outstanding > 0,
        )
        .order_by(outstanding.desc(), Client.id.asc())
    )
    return list(db.session.execute(stmt).scalars().all())


def recompute_client_rollups(client: Client) -> Client:
    """
    Rebuild the cached totals on ``client`` from every invoice of the same
    owner addressed to the client's email. Flushes, does not commit.
    """
    invoices = db.session.execute(
        sa.select(Invoice.status, Invoice.total, Invoice.created_at, Invoice.paid_at).where(
            Invoice.user_id == client.user_id,
            Invoice.client_email == client.email,
        )
    ).all()

    total_invoiced = Decimal("0")
    total_paid = Decimal("0")
    last_invoice_date = None
    last_payment_date = None
    for status, total, created_at, paid_at in invoices:
        total_invoiced += _money(total)
        if created_at and (last_invoice_date is None or created_at > last_invoice_date):
            last_invoice_date = created_at
        if status is InvoiceStatus.PAID:
            total_paid += _money(total)
            if paid_at and (last_payment_date is None or paid_at > last_payment_date):
                last_payment_date = paid_at

    client.total_invoiced = round2(total_invoiced)
    client.total_paid = round2(total_paid)
    client.invoice_count = len(invoices)
    client.last_invoice_date = last_invoice_date
    client.last_payment_date = last_payment_date
    db.session.flush()
    return client
