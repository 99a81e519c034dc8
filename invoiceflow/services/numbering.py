# invoiceflow/services/numbering.py
"""
Invoice-number allocation.

Numbers look like ``INV-202610-0007``: creation year and month, then a
four-digit sequence shared by every user for that month.

Allocation reads the greatest existing number for the month and adds one.
That read can race with another request, so the insert runs inside a
savepoint under the UNIQUE constraint on ``invoice.invoice_number``; a
collision rolls back the savepoint and a fresh number is read. After
``max_attempts`` collisions a ConflictError reaches the caller.
"""
from __future__ import annotations

import logging
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from invoiceflow.errors import ConflictError
from invoiceflow.extensions import db
from invoiceflow.models import Invoice, utcnow_naive

logger = logging.getLogger(__name__)

PREFIX = "INV"
SEQUENCE_WIDTH = 4


def invoice_number_prefix(now: datetime) -> str:
    return f"{PREFIX}-{now.year:04d}{now.month:02d}-"


def format_invoice_number(now: datetime, sequence: int) -> str:
    return f"{invoice_number_prefix(now)}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(invoice_number: str) -> int:
    """``INV-202610-0042`` -> 42"""
    try:
        return int(invoice_number.rsplit("-", 1)[1])
    except (AttributeError, IndexError, ValueError):
        raise ValueError(f"Not an invoice number: {invoice_number!r}") from None


def last_invoice_number(now: datetime) -> str | None:
    """
    Highest number issued in ``now``'s year-month, across all users.

    Sequences past 9999 grow a fifth digit, so numbers are compared by
    length first and only then as text.
    """
    prefix = invoice_number_prefix(now)
    return db.session.execute(
        sa.select(Invoice.invoice_number)
        .where(Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(sa.func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
        .limit(1)
    ).scalar()


def next_invoice_number(now: datetime | None = None) -> str:
    now = now or utcnow_naive()
    last = last_invoice_number(now)
    sequence = parse_sequence(last) + 1 if last else 1
    return format_invoice_number(now, sequence)


def insert_with_number(invoice: Invoice, now: datetime | None = None, max_attempts: int = 5) -> Invoice:
    """
    Add ``invoice`` to the session and flush it with a unique number.

    A number that is already set is never replaced; in that case a collision
    is a plain ConflictError with no retry. The surrounding transaction is
    left open for the caller to commit.
    """
    now = now or utcnow_naive()
    preassigned = bool(invoice.invoice_number)
    attempts = 1 if preassigned else max(1, max_attempts)

    for attempt in range(1, attempts + 1):
        if not preassigned:
            invoice.invoice_number = next_invoice_number(now)
        try:
            with db.session.begin_nested():
                db.session.add(invoice)
                db.session.flush()
            return invoice
        except IntegrityError:
            logger.warning(
                "Invoice number %s already taken (attempt %d/%d)",
                invoice.invoice_number,
                attempt,
                attempts,
            )

    raise ConflictError(
        "Could not allocate a unique invoice number. Please retry.",
        code="INVOICE_NUMBER_CONFLICT",
        details={"invoice_number": invoice.invoice_number, "attempts": attempts},
    )
