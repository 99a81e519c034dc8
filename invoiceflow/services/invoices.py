# invoiceflow/services/invoices.py
"""
Invoice operations as seen from the HTTP boundary.

Every function takes the requesting owner and scopes all reads and writes to
them. Domain errors propagate to the caller unchanged.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Mapping

import sqlalchemy as sa
from flask import current_app

from invoiceflow.errors import ValidationError
from invoiceflow.extensions import db
from invoiceflow.models import CURRENCIES, Invoice, InvoiceStatus, User, utcnow_naive
from invoiceflow.utils.parsing import clean_str, optional_str, parse_datetime, parse_email, required_str

from . import lifecycle, numbering, pricing, quota
from .base import commit_or_rollback, get_owned

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")

# Dropped from update payloads without complaint: identity, ownership,
# derived money fields and the timestamps owned by status transitions.
IMMUTABLE_FIELDS = frozenset({
    "id",
    "invoice_number",
    "user_id",
    "created_at",
    "updated_at",
    "subtotal",
    "tax_amount",
    "total",
    "is_overdue",
    "sent_at",
    "viewed_at",
    "paid_at",
    "cancelled_at",
})

DEFAULT_PAYMENT_TERMS = "Payment due within 30 days"


# =========================================================
# Field helpers
# =========================================================
def _client_address(raw) -> dict | None:
    if raw in (None, ""):
        return None
    if not isinstance(raw, Mapping):
        raise ValidationError("client_address must be an object", field="client_address")
    address = {}
    for key in ADDRESS_FIELDS:
        value = optional_str(raw.get(key), f"client_address.{key}", 200)
        if value:
            address[key] = value
    return address or None


def _currency(raw) -> str:
    currency = clean_str(raw).upper() or "USD"
    if currency not in CURRENCIES:
        raise ValidationError(f"currency must be one of {', '.join(CURRENCIES)}", field="currency")
    return currency


def _future_due_date(raw, now: datetime) -> datetime:
    due_date = parse_datetime(raw, "due_date")
    if due_date is None:
        raise ValidationError("Due date is required", field="due_date", code="MISSING_DUE_DATE")
    if due_date <= now:
        raise ValidationError("Due date must be in the future", field="due_date")
    return due_date


def _max_attempts() -> int:
    return int(current_app.config.get("INVOICE_NUMBER_MAX_ATTEMPTS", 5))


# =========================================================
# Create / read
# =========================================================
def create_invoice(owner: User, data: Mapping, now: datetime | None = None) -> Invoice:
    """
    Validate ``data``, derive the money fields, allocate a number and
    persist the invoice together with the owner's usage counter in one
    transaction.
    """
    now = now or utcnow_naive()
    try:
        quota.ensure_invoice_quota(owner, now)

        invoice = Invoice(
            user_id=owner.id,
            client_name=required_str(data.get("client_name"), "client_name", 200),
            client_email=parse_email(data.get("client_email"), "client_email"),
            client_address=_client_address(data.get("client_address")),
            currency=_currency(data.get("currency")),
            status=InvoiceStatus.DRAFT,
            issue_date=parse_datetime(data.get("issue_date"), "issue_date") or now,
            due_date=_future_due_date(data.get("due_date"), now),
            notes=optional_str(data.get("notes"), "notes", 1000),
            payment_terms=optional_str(data.get("payment_terms"), "payment_terms", 500) or DEFAULT_PAYMENT_TERMS,
            created_at=now,
            updated_at=now,
        )
        pricing.apply_totals(invoice, data.get("items"), data.get("tax_rate"))

        # Counter first so the user row is already in the transaction when
        # the insert savepoint opens.
        quota.record_invoice_created(owner)
        db.session.flush()
        numbering.insert_with_number(invoice, now, max_attempts=_max_attempts())
    except Exception:
        db.session.rollback()
        raise

    commit_or_rollback("Create invoice")
    logger.info("Created invoice %s for user %s", invoice.invoice_number, owner.id)
    return invoice


def get_invoice(owner_id: int, invoice_id) -> Invoice:
    return get_owned(Invoice, invoice_id, owner_id, "Invoice")


def list_invoices(
    owner_id: int,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    now: datetime | None = None,
) -> tuple[list[Invoice], dict]:
    """
    Newest first. Past-due open invoices are promoted to ``overdue`` before
    filtering so the status filter sees them.
    """
    if lifecycle.promote_overdue_for_owner(owner_id, now):
        commit_or_rollback("Promote overdue invoices")

    stmt = sa.select(Invoice).where(Invoice.user_id == owner_id)

    status = clean_str(status).lower()
    if status and status != "all":
        stmt = stmt.where(Invoice.status == lifecycle.parse_status(status))

    term = clean_str(search).lower()
    if term:
        stmt = stmt.where(
            sa.or_(
                sa.func.lower(Invoice.client_name).contains(term, autoescape=True),
                sa.func.lower(Invoice.client_email).contains(term, autoescape=True),
                sa.func.lower(Invoice.invoice_number).contains(term, autoescape=True),
            )
        )

    total = db.session.execute(sa.select(sa.func.count()).select_from(stmt.subquery())).scalar() or 0
    invoices = (
        db.session.execute(
            stmt.order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        .scalars()
        .all()
    )
    pagination = {"current": page, "pages": math.ceil(total / limit) if limit else 0, "total": total}
    return invoices, pagination


# =========================================================
# Update / delete
# =========================================================
def update_invoice(owner_id: int, invoice_id, data: Mapping, now: datetime | None = None) -> Invoice:
    """
    Partial update. Immutable and derived fields are silently dropped; money
    fields are re-derived whenever items or tax_rate are present. A new due
    date lifts a stored ``overdue`` status.
    """
    now = now or utcnow_naive()
    invoice = get_invoice(owner_id, invoice_id)
    changes = {k: v for k, v in dict(data).items() if k not in IMMUTABLE_FIELDS}

    try:
        if "client_name" in changes:
            invoice.client_name = required_str(changes["client_name"], "client_name", 200)
        if "client_email" in changes:
            invoice.client_email = parse_email(changes["client_email"], "client_email")
        if "client_address" in changes:
            invoice.client_address = _client_address(changes["client_address"])
        if "currency" in changes:
            invoice.currency = _currency(changes["currency"])
        if "issue_date" in changes:
            invoice.issue_date = parse_datetime(changes["issue_date"], "issue_date") or invoice.issue_date
        if "due_date" in changes:
            invoice.due_date = _future_due_date(changes["due_date"], now)
            lifecycle.demote_overdue(invoice, now)
        if "notes" in changes:
            invoice.notes = optional_str(changes["notes"], "notes", 1000)
        if "payment_terms" in changes:
            invoice.payment_terms = optional_str(changes["payment_terms"], "payment_terms", 500)

        if "items" in changes or "tax_rate" in changes:
            if "items" in changes and changes["items"] is None:
                raise ValidationError("Invoice must have at least one item", field="items")
            tax_rate = changes.get("tax_rate") if "tax_rate" in changes else None
            if "tax_rate" in changes and tax_rate is None:
                tax_rate = 0
            pricing.apply_totals(invoice, changes.get("items"), tax_rate)

        if "status" in changes:
            lifecycle.apply_status(invoice, changes["status"], now)

        invoice.updated_at = now
    except Exception:
        db.session.rollback()
        raise

    commit_or_rollback("Update invoice")
    return invoice


def delete_invoice(owner_id: int, invoice_id) -> None:
    """
    Hard delete. The client's cached rollups and the owner's usage counter
    are left as they are; call clients.refresh_financial_stats afterwards.
    """
    invoice = get_invoice(owner_id, invoice_id)
    number = invoice.invoice_number
    db.session.delete(invoice)
    commit_or_rollback("Delete invoice")
    logger.info("Deleted invoice %s for user %s", number, owner_id)


# =========================================================
# Status transitions
# =========================================================
def _transition(owner_id: int, invoice_id, operation, action: str, now: datetime | None) -> Invoice:
    invoice = get_invoice(owner_id, invoice_id)
    operation(invoice, now or utcnow_naive())
    commit_or_rollback(action)
    return invoice


def send_invoice(owner_id: int, invoice_id, now: datetime | None = None) -> Invoice:
    return _transition(owner_id, invoice_id, lifecycle.mark_as_sent, "Send invoice", now)


def mark_invoice_viewed(owner_id: int, invoice_id, now: datetime | None = None) -> Invoice:
    return _transition(owner_id, invoice_id, lifecycle.mark_as_viewed, "Mark invoice viewed", now)


def mark_invoice_paid(owner_id: int, invoice_id, now: datetime | None = None) -> Invoice:
    return _transition(owner_id, invoice_id, lifecycle.mark_as_paid, "Mark invoice paid", now)


def cancel_invoice(owner_id: int, invoice_id, now: datetime | None = None) -> Invoice:
    return _transition(owner_id, invoice_id, lifecycle.cancel, "Cancel invoice", now)
