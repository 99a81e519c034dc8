# invoiceflow/services/lifecycle.py
"""
Invoice status machine.

    draft -> sent -> viewed -> paid
    cancelled   reachable from every non-terminal status
    overdue     stored by promote_overdue(), undone by demote_overdue();
                is_overdue() is the live view

paid and cancelled are terminal. Transitions only mutate the entity; the
caller owns the session and commits.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

import sqlalchemy as sa

from invoiceflow.errors import ConflictError, ValidationError
from invoiceflow.extensions import db
from invoiceflow.models import Invoice, InvoiceStatus, utcnow_naive

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})
OPEN_STATUSES = frozenset(InvoiceStatus) - TERMINAL_STATUSES

# Source statuses each operation accepts. Re-sending an open invoice is
# allowed (it refreshes sent_at); nothing leaves a terminal status.
ALLOWED_TRANSITIONS = {
    InvoiceStatus.SENT: OPEN_STATUSES,
    InvoiceStatus.VIEWED: frozenset({InvoiceStatus.SENT}),
    InvoiceStatus.PAID: OPEN_STATUSES,
    InvoiceStatus.CANCELLED: OPEN_STATUSES,
    InvoiceStatus.OVERDUE: OPEN_STATUSES - {InvoiceStatus.OVERDUE},
}


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return current in ALLOWED_TRANSITIONS.get(target, frozenset())


def _reject(invoice: Invoice, target: InvoiceStatus):
    raise ConflictError(
        f"Invoice {invoice.invoice_number} is {invoice.status.value} and cannot be marked {target.value}",
        code="INVALID_STATUS_TRANSITION",
        details={"from": invoice.status.value, "to": target.value},
    )


def mark_as_sent(invoice: Invoice, now: datetime | None = None) -> Invoice:
    if not can_transition(invoice.status, InvoiceStatus.SENT):
        _reject(invoice, InvoiceStatus.SENT)
    invoice.status = InvoiceStatus.SENT
    invoice.sent_at = now or utcnow_naive()
    return invoice


def mark_as_viewed(invoice: Invoice, now: datetime | None = None) -> Invoice:
    # Only a sent invoice can become viewed; anything else is left untouched.
    if invoice.status is not InvoiceStatus.SENT:
        return invoice
    invoice.status = InvoiceStatus.VIEWED
    invoice.viewed_at = now or utcnow_naive()
    return invoice


def mark_as_paid(invoice: Invoice, now: datetime | None = None) -> Invoice:
    if invoice.status is InvoiceStatus.PAID:
        return invoice
    if not can_transition(invoice.status, InvoiceStatus.PAID):
        _reject(invoice, InvoiceStatus.PAID)
    invoice.status = InvoiceStatus.PAID
    invoice.paid_at = now or utcnow_naive()
    return invoice


def cancel(invoice: Invoice, now: datetime | None = None) -> Invoice:
    if invoice.status is InvoiceStatus.CANCELLED:
        return invoice
    if not can_transition(invoice.status, InvoiceStatus.CANCELLED):
        _reject(invoice, InvoiceStatus.CANCELLED)
    invoice.status = InvoiceStatus.CANCELLED
    invoice.cancelled_at = now or utcnow_naive()
    return invoice


def is_overdue(invoice: Invoice, now: datetime | None = None) -> bool:
    if invoice.status in TERMINAL_STATUSES or invoice.due_date is None:
        return False
    return invoice.due_date < (now or utcnow_naive())


def promote_overdue(invoices: Iterable[Invoice], now: datetime | None = None) -> list[Invoice]:
    """Store ``overdue`` on every qualifying invoice. Returns the ones changed."""
    now = now or utcnow_naive()
    promoted = []
    for invoice in invoices:
        if not can_transition(invoice.status, InvoiceStatus.OVERDUE) or not is_overdue(invoice, now):
            continue
        invoice.status = InvoiceStatus.OVERDUE
        promoted.append(invoice)
    return promoted


def demote_overdue(invoice: Invoice, now: datetime | None = None) -> Invoice:
    """
    Undo a stored ``overdue`` that no longer holds, typically after the due
    date was pushed back. The invoice returns to the last open status its
    timestamps show it reached.
    """
    if invoice.status is not InvoiceStatus.OVERDUE or is_overdue(invoice, now):
        return invoice
    if invoice.viewed_at is not None:
        invoice.status = InvoiceStatus.VIEWED
    elif invoice.sent_at is not None:
        invoice.status = InvoiceStatus.SENT
    else:
        invoice.status = InvoiceStatus.DRAFT
    logger.info("Invoice %s is no longer overdue; now %s", invoice.invoice_number, invoice.status.value)
    return invoice



def overdue_candidates_query(now: datetime, owner_id: int | None = None):
    stmt = sa.select(Invoice).where(
        Invoice.status.in_(list(OPEN_STATUSES - {InvoiceStatus.OVERDUE})),
        Invoice.due_date < now,
    )
    if owner_id is not None:
        stmt = stmt.where(Invoice.user_id == owner_id)
    return stmt


def promote_overdue_for_owner(owner_id: int | None, now: datetime | None = None) -> int:
    """
    Promote past-due invoices of one owner (or of everyone when ``owner_id``
    is None). Flushes but does not commit.
    """
    now = now or utcnow_naive()
    candidates = db.session.execute(overdue_candidates_query(now, owner_id)).scalars().all()
    promoted = promote_overdue(candidates, now)
    if promoted:
        db.session.flush()
        logger.info("Promoted %d invoice(s) to overdue", len(promoted))
    return len(promoted)


_STATUS_OPERATIONS = {
    InvoiceStatus.SENT: mark_as_sent,
    InvoiceStatus.VIEWED: mark_as_viewed,
    InvoiceStatus.PAID: mark_as_paid,
    InvoiceStatus.CANCELLED: cancel,
}


def parse_status(raw) -> InvoiceStatus:
    if isinstance(raw, InvoiceStatus):
        return raw
    try:
        return InvoiceStatus((str(raw or "")).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown invoice status: {raw!r}", field="status") from None


def apply_status(invoice: Invoice, raw_status, now: datetime | None = None) -> Invoice:
    """
    Route a requested status (from an update payload) through the matching
    transition. Asking for the current status is a no-op; ``draft`` and
    ``overdue`` cannot be requested directly.
    """
    target = parse_status(raw_status)
    if target is invoice.status:
        return invoice
    operation = _STATUS_OPERATIONS.get(target)
    if operation is None:
        _reject(invoice, target)
    return operation(invoice, now)
