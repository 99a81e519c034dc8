# invoiceflow/services/quota.py
from __future__ import annotations

import logging
from datetime import datetime

from invoiceflow.errors import QuotaExceededError
from invoiceflow.models import User, utcnow_naive

logger = logging.getLogger(__name__)


def _same_month(a: datetime, b: datetime) -> bool:
    return a.year == b.year and a.month == b.month


def roll_quota_period(user: User, now: datetime | None = None) -> bool:
    """
    Reset the monthly counter when the calendar month has changed since
    ``last_invoice_reset``. Returns True when a reset happened.
    """
    now = now or utcnow_naive()
    if user.last_invoice_reset is not None and _same_month(user.last_invoice_reset, now):
        return False
    user.invoice_count = 0
    user.last_invoice_reset = now
    return True


def can_create_invoice(user: User, now: datetime | None = None) -> bool:
    if user.is_premium:
        return True
    now = now or utcnow_naive()
    if user.last_invoice_reset is None or not _same_month(user.last_invoice_reset, now):
        return True  # counter rolls over on the next write
    return (user.invoice_count or 0) < (user.monthly_invoice_limit or 0)


def ensure_invoice_quota(user: User, now: datetime | None = None) -> None:
    roll_quota_period(user, now)
    if can_create_invoice(user, now):
        return
    logger.info("User %s hit the monthly invoice limit (%s)", user.id, user.monthly_invoice_limit)
    raise QuotaExceededError(
        "Monthly invoice limit reached. Upgrade to premium for unlimited invoices.",
        current_count=user.invoice_count,
        limit=user.monthly_invoice_limit,
    )


def record_invoice_created(user: User) -> None:
    user.invoice_count = (user.invoice_count or 0) + 1
