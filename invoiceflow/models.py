# invoiceflow/models.py
from __future__ import annotations

import enum
from datetime import datetime, timezone

from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum

from .extensions import db


# Naive UTC everywhere: the timestamp columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _enum_column(enum_cls, name: str, default):
    return db.Column(
        SAEnum(
            enum_cls,
            name=name,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=default,
    )


# =========================================================
# Enums
# =========================================================
class InvoiceStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class ClientStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


CURRENCIES = ("USD", "EUR", "GBP", "CAD", "AUD")

PAYMENT_TERMS_CHOICES = ("Net 15", "Net 30", "Net 45", "Net 60", "Due on Receipt", "Custom")


# =========================================================
# User (owner of clients and invoices)
# =========================================================
class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Plan
    role = db.Column(db.String(20), nullable=False, default="free")
    subscription_status = db.Column(db.String(20), nullable=False, default="inactive")

    # Monthly quota (see services.quota)
    invoice_count = db.Column(db.Integer, nullable=False, default=0)
    monthly_invoice_limit = db.Column(db.Integer, nullable=False, default=5)
    last_invoice_reset = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    created_at = db.Column(db.DateTime, default=utcnow_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow_naive, onupdate=utcnow_naive, nullable=False)

    clients = db.relationship("Client", back_populates="owner", lazy="dynamic")
    invoices = db.relationship("Invoice", back_populates="owner", lazy="dynamic")

    @property
    def is_premium(self) -> bool:
        return self.role == "premium" and self.subscription_status == "active"

    def to_dict(self) -> dict:
        # password_hash never leaves the model
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "subscription_status": self.subscription_status,
            "invoice_count": self.invoice_count,
            "monthly_invoice_limit": self.monthly_invoice_limit,
            "last_invoice_reset": _iso(self.last_invoice_reset),
            "is_premium": self.is_premium,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} {self.role}>"


# =========================================================
# Client
# =========================================================
class Client(db.Model):
    __tablename__ = "client"
    __table_args__ = (
        # Email is unique per owning user, not globally.
        db.UniqueConstraint("user_id", "email", name="uq_client_user_email"),
        db.Index("ix_client_user_status", "user_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = db.relationship("User", back_populates="clients")

    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    company = db.Column(db.String(200), nullable=True)

    street = db.Column(db.String(200), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True, default="United States")

    notes = db.Column(db.Text, nullable=True)
    status = _enum_column(ClientStatus, "client_status", ClientStatus.ACTIVE)

    # Cached rollups. Stale until services.stats.recompute_client_rollups runs.
    total_invoiced = db.Column(db.Float, nullable=False, default=0.0)
    total_paid = db.Column(db.Float, nullable=False, default=0.0)
    invoice_count = db.Column(db.Integer, nullable=False, default=0)
    last_invoice_date = db.Column(db.DateTime, nullable=True)
    last_payment_date = db.Column(db.DateTime, nullable=True)

    preferred_payment_terms = db.Column(db.String(20), nullable=False, default="Net 30")
    custom_payment_terms = db.Column(db.String(200), nullable=True)
    tax_id = db.Column(db.String(50), nullable=True)
    tax_exempt = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=utcnow_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow_naive, onupdate=utcnow_naive, nullable=False)

    @property
    def outstanding_balance(self) -> float:
        return round((self.total_invoiced or 0.0) - (self.total_paid or 0.0), 2)

    @property
    def full_address(self) -> str:
        parts = [self.street, self.city, self.state, self.zip_code, self.country]
        return ", ".join(p for p in parts if p)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "address": {
                "street": self.street,
                "city": self.city,
                "state": self.state,
                "zip_code": self.zip_code,
                "country": self.country,
            },
            "full_address": self.full_address,
            "notes": self.notes,
            "status": self.status.value,
            "total_invoiced": self.total_invoiced,
            "total_paid": self.total_paid,
            "outstanding_balance": self.outstanding_balance,
            "invoice_count": self.invoice_count,
            "last_invoice_date": _iso(self.last_invoice_date),
            "last_payment_date": _iso(self.last_payment_date),
            "preferred_payment_terms": self.preferred_payment_terms,
            "custom_payment_terms": self.custom_payment_terms,
            "tax_id": self.tax_id,
            "tax_exempt": self.tax_exempt,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Client {self.id} {self.email} {self.status}>"


# =========================================================
# Invoice
# =========================================================
class Invoice(db.Model):
    __tablename__ = "invoice"
    __table_args__ = (
        db.Index("ix_invoice_user_status", "user_id", "status"),
        db.Index("ix_invoice_user_created", "user_id", "created_at"),
        db.Index("ix_invoice_due_status", "due_date", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = db.relationship("User", back_populates="invoices")

    # UNIQUE is what turns an allocation race into a retryable IntegrityError.
    invoice_number = db.Column(db.String(20), unique=True, nullable=False)

    client_name = db.Column(db.String(200), nullable=False)
    client_email = db.Column(db.String(120), nullable=False, index=True)
    client_address = db.Column(db.JSON, nullable=True)

    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="select",
    )

    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    tax_rate = db.Column(db.Float, nullable=False, default=0.0)
    tax_amount = db.Column(db.Float, nullable=False, default=0.0)
    total = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(3), nullable=False, default="USD")

    status = _enum_column(InvoiceStatus, "invoice_status", InvoiceStatus.DRAFT)

    issue_date = db.Column(db.DateTime, default=utcnow_naive, nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)

    sent_at = db.Column(db.DateTime, nullable=True)
    viewed_at = db.Column(db.DateTime, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    payment_terms = db.Column(db.String(500), nullable=True, default="Payment due within 30 days")

    reminders_sent = db.Column(db.Integer, nullable=False, default=0)
    last_reminder_sent = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow_naive, onupdate=utcnow_naive, nullable=False)

    @property
    def is_overdue(self) -> bool:
        from .services.lifecycle import is_overdue

        return is_overdue(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "invoice_number": self.invoice_number,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_address": self.client_address,
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "tax_rate": self.tax_rate,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "currency": self.currency,
            "status": self.status.value,
            "is_overdue": self.is_overdue,
            "issue_date": _iso(self.issue_date),
            "due_date": _iso(self.due_date),
            "sent_at": _iso(self.sent_at),
            "viewed_at": _iso(self.viewed_at),
            "paid_at": _iso(self.paid_at),
            "cancelled_at": _iso(self.cancelled_at),
            "notes": self.notes,
            "payment_terms": self.payment_terms,
            "reminders_sent": self.reminders_sent,
            "last_reminder_sent": _iso(self.last_reminder_sent),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Invoice {self.id} {self.invoice_number} {self.status}>"


# =========================================================
# InvoiceItem
# =========================================================
class InvoiceItem(db.Model):
    __tablename__ = "invoice_item"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice = db.relationship("Invoice", back_populates="items")

    position = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    total = db.Column(db.Float, nullable=False, default=0.0)

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total": self.total,
        }
