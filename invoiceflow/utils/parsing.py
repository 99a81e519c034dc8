# invoiceflow/utils/parsing.py
from __future__ import annotations

import re
from datetime import date, datetime, time, timezone

from invoiceflow.errors import ValidationError

# No nested quantifiers over the same characters: a failed match stays cheap.
EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$")



def clean_str(val) -> str:
    return (str(val) if val is not None else "").strip()


def optional_str(val, field: str, max_length: int) -> str | None:
    s = clean_str(val)
    if not s:
        return None
    if len(s) > max_length:
        raise ValidationError(f"{field} cannot be more than {max_length} characters", field=field)
    return s


def required_str(val, field: str, max_length: int) -> str:
    s = optional_str(val, field, max_length)
    if s is None:
        raise ValidationError(f"{field} is required", field=field)
    return s


def parse_email(val, field: str = "email") -> str:
    email = clean_str(val).lower()
    if not email:
        raise ValidationError(f"{field} is required", field=field)
    if len(email) > 120 or not EMAIL_RE.match(email):
        raise ValidationError(f"Please enter a valid {field.replace('_', ' ')}", field=field)
    return email


def parse_datetime(val, field: str) -> datetime | None:
    """
    Accepts datetime, date or ISO-8601 text. Aware values are converted to
    naive UTC; a bare date means midnight.
    """
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        dt = val
    elif isinstance(val, date):
        dt = datetime.combine(val, time.min)
    else:
        text = clean_str(val)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date", field=field) from None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_bool(val) -> bool:
    if isinstance(val, bool):
        return val
    return clean_str(val).lower() in ("1", "true", "yes", "on")


def parse_page_args(page, limit, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    try:
        page_i = int(page) if page not in (None, "") else 1
        limit_i = int(limit) if limit not in (None, "") else default_limit
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers", field="page") from None
    if page_i < 1:
        page_i = 1
    limit_i = max(1, min(limit_i, max_limit))
    return page_i, limit_i
