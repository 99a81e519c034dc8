# invoiceflow/errors.py
"""
Domain errors raised by the invoicing services.

Services raise these where the problem is detected and let them propagate;
the error handler registered in ``create_app`` turns them into JSON.
"""
from __future__ import annotations

from typing import Any


class InvoicingError(Exception):
    status_code = 500
    code = "INVOICING_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"message": self.message, "error": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(InvoicingError):
    """Malformed or missing input. ``details`` is a list of {field, message}."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None, errors: list[dict] | None = None, code: str | None = None):
        errors = list(errors or [])
        if field and not errors:
            errors.append({"field": field, "message": message})
        super().__init__(message, code=code, details=errors or None)
        self.errors = errors

    @property
    def fields(self) -> list[str]:
        return [e["field"] for e in self.errors if e.get("field")]


class NotFoundError(InvoicingError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(InvoicingError):
    status_code = 403
    code = "ACCESS_DENIED"


class ConflictError(InvoicingError):
    status_code = 409
    code = "CONFLICT"


class QuotaExceededError(InvoicingError):
    status_code = 403
    code = "INVOICE_LIMIT_REACHED"

    def __init__(self, message: str, *, current_count: int, limit: int):
        super().__init__(message, details={"current_count": current_count, "limit": limit})
        self.current_count = current_count
        self.limit = limit


class AuthenticationError(InvoicingError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
