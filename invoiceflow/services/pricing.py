# invoiceflow/services/pricing.py
"""
Derived money fields of an invoice.

Rounding happens at every step (line total, subtotal, tax, grand total) so
the stored figures add up the way a printed invoice does. All arithmetic is
done on ``Decimal`` built from the decimal representation of the inputs;
binary floats would turn 5.09745 into 5.097449999... and round it down.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Mapping, Sequence

from invoiceflow.errors import ValidationError

CENT = Decimal("0.01")

MAX_QUANTITY = Decimal("999999")
MAX_UNIT_PRICE = Decimal("999999.99")
MAX_DESCRIPTION_LENGTH = 500


@dataclass(frozen=True)
class LineTotal:
    description: str
    quantity: float
    unit_price: float
    total: float


@dataclass(frozen=True)
class InvoiceTotals:
    items: tuple[LineTotal, ...]
    subtotal: float
    tax_amount: float
    total: float


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("booleans are not amounts")
    return Decimal(str(value))


def _round_decimal(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round2(value) -> float:
    """Round to 2 places, ties away from zero."""
    return float(_round_decimal(_to_decimal(value)))


def _positive_amount(raw, field: str, maximum: Decimal) -> Decimal:
    if raw is None or raw == "":
        raise ValidationError(f"{field} is required", field=field)
    try:
        value = _to_decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field) from None
    if not value.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    if value <= 0:
        raise ValidationError(f"{field} must be greater than 0", field=field)
    if value > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}", field=field)
    return value


def validate_tax_rate(raw) -> Decimal:
    if raw is None or raw == "":
        return Decimal("0")
    try:
        rate = _to_decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("tax_rate must be a number", field="tax_rate") from None
    if not rate.is_finite() or rate < 0 or rate > 100:
        raise ValidationError("tax_rate must be between 0 and 100", field="tax_rate")
    return rate


def validate_items(items) -> list[tuple[str, Decimal, Decimal]]:
    """
    Check a raw items payload and return (description, quantity, unit_price)
    triples. Raises ValidationError naming the offending item and field,
    e.g. ``items[2].unit_price``.
    """
    if not isinstance(items, Sequence) or isinstance(items, (str, bytes)) or not items:
        raise ValidationError("Invoice must have at least one item", field="items")

    cleaned = []
    for idx, item in enumerate(items):
        prefix = f"items[{idx}]"
        if not isinstance(item, Mapping):
            raise ValidationError(f"{prefix} must be an object", field=prefix)

        description = (str(item.get("description") or "")).strip()
        if not description:
            raise ValidationError(f"{prefix}.description is required", field=f"{prefix}.description")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"{prefix}.description cannot be more than {MAX_DESCRIPTION_LENGTH} characters",
                field=f"{prefix}.description",
            )

        quantity = _positive_amount(item.get("quantity"), f"{prefix}.quantity", MAX_QUANTITY)
        unit_price = _positive_amount(item.get("unit_price"), f"{prefix}.unit_price", MAX_UNIT_PRICE)
        cleaned.append((description, quantity, unit_price))
    return cleaned


def compute_totals(items: Iterable[Mapping], tax_rate=0) -> InvoiceTotals:
    """
    Pure computation of every derived money field:

        item.total = round2(quantity * unit_price)
        subtotal   = round2(sum(item.total))
        tax_amount = round2(subtotal * tax_rate / 100)
        total      = round2(subtotal + tax_amount)
    """
    cleaned = validate_items(list(items))
    rate = validate_tax_rate(tax_rate)

    lines = []
    line_totals = []
    for description, quantity, unit_price in cleaned:
        line_total = _round_decimal(quantity * unit_price)
        line_totals.append(line_total)
        lines.append(LineTotal(description, float(quantity), float(unit_price), float(line_total)))

    subtotal = _round_decimal(sum(line_totals, Decimal("0")))
    tax_amount = _round_decimal(subtotal * rate / Decimal("100"))
    total = _round_decimal(subtotal + tax_amount)

    return InvoiceTotals(
        items=tuple(lines),
        subtotal=float(subtotal),
        tax_amount=float(tax_amount),
        total=float(total),
    )


def apply_totals(invoice, items=None, tax_rate=None) -> InvoiceTotals:
    """
    Recompute the derived fields of ``invoice`` in place.

    ``items`` / ``tax_rate`` default to what the invoice already holds, so the
    same call serves creation (raw payload) and updates (only one side
    changed).
    """
    from invoiceflow.models import InvoiceItem

    if items is None:
        items = [
            {"description": i.description, "quantity": i.quantity, "unit_price": i.unit_price}
            for i in invoice.items
        ]
    if tax_rate is None:
        tax_rate = invoice.tax_rate or 0

    totals = compute_totals(items, tax_rate)

    invoice.items = [
        InvoiceItem(
            position=pos,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total=line.total,
        )
        for pos, line in enumerate(totals.items)
    ]
    invoice.tax_rate = float(validate_tax_rate(tax_rate))
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.total = totals.total
    return totals
