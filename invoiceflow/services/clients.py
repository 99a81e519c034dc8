# invoiceflow/services/clients.py
from __future__ import annotations

import logging
import math
from typing import Mapping

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from invoiceflow.errors import ConflictError, ValidationError
from invoiceflow.extensions import db
from invoiceflow.models import PAYMENT_TERMS_CHOICES, Client, ClientStatus, Invoice, User
from invoiceflow.utils.parsing import clean_str, optional_str, parse_bool, parse_email, required_str

from . import stats
from .base import commit_or_rollback, get_owned

logger = logging.getLogger(__name__)

# Cached rollups are only ever written by stats.recompute_client_rollups.
PROTECTED_FIELDS = frozenset({
    "id",
    "user_id",
    "total_invoiced",
    "total_paid",
    "invoice_count",
    "last_invoice_date",
    "last_payment_date",
    "outstanding_balance",
    "created_at",
    "updated_at",
})

_TEXT_FIELDS = {
    "phone": 20,
    "company": 200,
    "notes": 1000,
    "custom_payment_terms": 200,
    "tax_id": 50,
}

_ADDRESS_FIELDS = {
    "street": 200,
    "city": 100,
    "state": 100,
    "zip_code": 20,
    "country": 100,
}


def _client_status(raw) -> ClientStatus:
    try:
        return ClientStatus(clean_str(raw).lower() or "active")
    except ValueError:
        raise ValidationError("status must be active or inactive", field="status") from None


def _payment_terms(raw) -> str:
    terms = clean_str(raw) or "Net 30"
    if terms not in PAYMENT_TERMS_CHOICES:
        raise ValidationError(
            f"preferred_payment_terms must be one of {', '.join(PAYMENT_TERMS_CHOICES)}",
            field="preferred_payment_terms",
        )
    return terms


def _apply_fields(client: Client, data: Mapping) -> None:
    if "name" in data:
        client.name = required_str(data["name"], "name", 200)
    if "email" in data:
        client.email = parse_email(data["email"])
    for field, max_length in _TEXT_FIELDS.items():
        if field in data:
            setattr(client, field, optional_str(data[field], field, max_length))

    address = data.get("address")
    if address is not None and not isinstance(address, Mapping):
        raise ValidationError("address must be an object", field="address")
    for field, max_length in _ADDRESS_FIELDS.items():
        if address and field in address:
            setattr(client, field, optional_str(address[field], f"address.{field}", max_length))

    if "status" in data:
        client.status = _client_status(data["status"])
    if "preferred_payment_terms" in data:
        client.preferred_payment_terms = _payment_terms(data["preferred_payment_terms"])
    if "tax_exempt" in data:
        client.tax_exempt = parse_bool(data["tax_exempt"])


def _email_taken(owner_id: int, email: str, exclude_id: int | None = None) -> bool:
    stmt = sa.select(Client.id).where(Client.user_id == owner_id, Client.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Client.id != exclude_id)
    # The pending change must not be flushed before it has been checked.
    with db.session.no_autoflush:
        return db.session.execute(stmt.limit(1)).first() is not None


def _duplicate_email() -> ConflictError:
    return ConflictError(
        "A client with this email already exists",
        code="DUPLICATE_CLIENT_EMAIL",
        details=[{"field": "email", "message": "A client with this email already exists"}],
    )


def _commit_client(action: str) -> None:
    try:
        commit_or_rollback(action)
    except IntegrityError:
        # Lost a race against a concurrent insert of the same email.
        raise _duplicate_email() from None


# =========================================================
# CRUD
# =========================================================
def create_client(owner: User, data: Mapping) -> Client:
    client = Client(
        user_id=owner.id,
        name=required_str(data.get("name"), "name", 200),
        email=parse_email(data.get("email")),
        status=ClientStatus.ACTIVE,
        preferred_payment_terms="Net 30",
    )
    _apply_fields(client, {k: v for k, v in dict(data).items() if k not in PROTECTED_FIELDS})

    if _email_taken(owner.id, client.email):
        raise _duplicate_email()

    db.session.add(client)
    _commit_client("Create client")
    return client


def get_client(owner_id: int, client_id) -> Client:
    return get_owned(Client, client_id, owner_id, "Client")


def list_clients(
    owner_id: int,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Client], dict]:
    stmt = sa.select(Client).where(Client.user_id == owner_id)

    status = clean_str(status).lower()
    if status and status != "all":
        stmt = stmt.where(Client.status == _client_status(status))

    term = clean_str(search).lower()
    if term:
        stmt = stmt.where(
            sa.or_(
                sa.func.lower(Client.name).contains(term, autoescape=True),
                sa.func.lower(Client.email).contains(term, autoescape=True),
                sa.func.lower(Client.company).contains(term, autoescape=True),
            )
        )

    total = db.session.execute(sa.select(sa.func.count()).select_from(stmt.subquery())).scalar() or 0
    clients = (
        db.session.execute(
            stmt.order_by(Client.created_at.desc(), Client.id.desc()).limit(limit).offset((page - 1) * limit)
        )
        .scalars()
        .all()
    )
    return clients, {"current": page, "pages": math.ceil(total / limit) if limit else 0, "total": total}


def update_client(owner_id: int, client_id, data: Mapping) -> Client:
    client = get_client(owner_id, client_id)
    changes = {k: v for k, v in dict(data).items() if k not in PROTECTED_FIELDS}

    try:
        _apply_fields(client, changes)
        if "email" in changes and _email_taken(owner_id, client.email, exclude_id=client.id):
            raise _duplicate_email()
    except Exception:
        db.session.rollback()
        raise

    _commit_client("Update client")
    return client


def delete_client(owner_id: int, client_id) -> None:
    """Refused while any of the owner's invoices are addressed to this client."""
    client = get_client(owner_id, client_id)

    invoice_count = db.session.execute(
        sa.select(sa.func.count(Invoice.id)).where(
            Invoice.user_id == owner_id,
            Invoice.client_email == client.email,
        )
    ).scalar() or 0

    if invoice_count:
        raise ConflictError(
            f"Cannot delete client with {invoice_count} existing invoice(s). "
            "Please delete invoices first or set client status to inactive.",
            code="CLIENT_HAS_INVOICES",
            details={"invoice_count": invoice_count},
        )

    db.session.delete(client)
    commit_or_rollback("Delete client")


# =========================================================
# Cached rollups
# =========================================================
def refresh_financial_stats(owner_id: int, client_id) -> Client:
    """Recompute and persist the client's cached totals, then return it."""
    client = get_client(owner_id, client_id)
    stats.recompute_client_rollups(client)
    commit_or_rollback("Update client statistics")
    return client


def refresh_all_financial_stats(owner_id: int | None = None) -> int:
    stmt = sa.select(Client)
    if owner_id is not None:
        stmt = stmt.where(Client.user_id == owner_id)
    count = 0
    for client in db.session.execute(stmt).scalars().all():
        stats.recompute_client_rollups(client)
        count += 1
    commit_or_rollback("Refresh client statistics")
    logger.info("Refreshed cached rollups for %d client(s)", count)
    return count
