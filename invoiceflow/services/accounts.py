# invoiceflow/services/accounts.py
from __future__ import annotations

import logging

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import IntegrityError

from invoiceflow.errors import AuthenticationError, ConflictError, ValidationError
from invoiceflow.extensions import db
from invoiceflow.models import User, utcnow_naive
from invoiceflow.utils.parsing import clean_str, parse_email, required_str
from invoiceflow.utils.passwords import MIN_PASSWORD_LENGTH, hash_password, validate_password, verify_password

from .base import commit_or_rollback

logger = logging.getLogger(__name__)


def find_by_email(email: str) -> User | None:
    email = clean_str(email).lower()
    if not email:
        return None
    return db.session.execute(sa.select(User).where(User.email == email)).scalar_one_or_none()


def register_user(name, email, password) -> User:
    name = required_str(name, "name", 100)
    email = parse_email(email)
    validate_password(password)

    if find_by_email(email) is not None:
        raise ConflictError("User with this email already exists", code="USER_EXISTS")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role="free",
        subscription_status="inactive",
        invoice_count=0,
        monthly_invoice_limit=int(current_app.config.get("FREE_MONTHLY_INVOICE_LIMIT", 5)),
        last_invoice_reset=utcnow_naive(),
    )
    db.session.add(user)
    try:
        commit_or_rollback("Register user")
    except IntegrityError:
        raise ConflictError("User with this email already exists", code="USER_EXISTS") from None

    logger.info("Registered user %s", user.id)
    return user


def authenticate(email, password) -> User | None:
    """The user for these credentials, or None."""
    user = find_by_email(email)
    if user is None or not verify_password(user.password_hash, password or ""):
        return None
    return user


def update_profile(user: User, data) -> User:
    """Only the display name is editable; email and plan fields are ignored."""
    if not clean_str(data.get("name")):
        raise ValidationError("Name is required", field="name", code="MISSING_NAME")
    user.name = required_str(data.get("name"), "name", 100)
    commit_or_rollback("Update profile")
    return user


def change_password(user: User, current_password, new_password) -> None:
    missing = [
        {"field": field, "message": f"{field} is required"}
        for field, value in (("current_password", current_password), ("new_password", new_password))
        if not value
    ]
    if missing:
        raise ValidationError(
            "Current password and new password are required", errors=missing, code="MISSING_PASSWORDS"
        )
    if isinstance(new_password, str) and len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters long",
            field="new_password",
            code="PASSWORD_TOO_SHORT",
        )
    if not verify_password(user.password_hash, current_password):
        raise AuthenticationError("Current password is incorrect", code="INVALID_CURRENT_PASSWORD")

    user.password_hash = hash_password(new_password)
    commit_or_rollback("Change password")
    logger.info("Password changed for user %s", user.id)

