# invoiceflow/utils/passwords.py
from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

from invoiceflow.errors import ValidationError

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128
HASH_METHOD = "scrypt"


def validate_password(plain_password) -> str:
    """Return the password untouched, or raise ValidationError on ``password``."""
    if not isinstance(plain_password, str) or not plain_password.strip():
        raise ValidationError("Password is required", field="password")
    if len(plain_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", field="password"
        )
    if len(plain_password) > MAX_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password cannot be more than {MAX_PASSWORD_LENGTH} characters", field="password"
        )
    return plain_password


def hash_password(plain_password: str) -> str:
    return generate_password_hash(validate_password(plain_password), method=HASH_METHOD)


def verify_password(password_hash: str | None, plain_password) -> bool:
    # An account without a hash can never log in.
    if not password_hash or not isinstance(plain_password, str) or not plain_password:
        return False
    return check_password_hash(password_hash, plain_password)
