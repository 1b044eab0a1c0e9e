"""Derived-field arithmetic for material lines and assignment payments.

Everything here is pure: the services call these functions at every place a
material line or the payment fields change, and copy the results onto the
ORM rows.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from models import PaymentStatus

from .helpers import parse_decimal, strip_or_none

ZERO = Decimal("0")
# Column scales: quantities are Numeric(14, 3), rates and money Numeric(14, 2).
QUANTITY_SCALE = "0.001"
MONEY_SCALE = "0.01"
MONEY_STEP = Decimal(MONEY_SCALE)

QUANTITY_FIELDS = (
    "quantity_given",
    "quantity_used",
    "quantity_returned",
    "quantity_wasted",
)

MATERIAL_TEXT_FIELDS = (
    "item_id",
    "item_name",
    "item_code",
    "category_id",
    "category_name",
    "unit",
    "notes",
)

MATERIAL_FIELDS = MATERIAL_TEXT_FIELDS + QUANTITY_FIELDS + ("rate",)

REQUIRED_MATERIAL_FIELDS = {
    "item_id": "Item is required.",
    "item_name": "Item name is required.",
    "unit": "Unit is required.",
}


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def recompute_material(entry: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``entry`` with ``quantity_remaining`` and ``total_value`` derived.

    Raw quantities are passed through untouched; only the remaining quantity
    is floored at zero. ``total_value`` is ``rate * quantity_given`` when a
    rate is present and ``None`` otherwise.
    """

    result = dict(entry)
    given, used, returned, wasted = (_as_decimal(entry.get(field)) for field in QUANTITY_FIELDS)
    result.update(
        quantity_given=given,
        quantity_used=used,
        quantity_returned=returned,
        quantity_wasted=wasted,
    )
    result["quantity_remaining"] = max(ZERO, given - used - returned - wasted)

    rate = entry.get("rate")
    if rate is None:
        result["rate"] = None
        result["total_value"] = None
    else:
        rate = _as_decimal(rate)
        result["rate"] = rate
        result["total_value"] = (rate * given).quantize(MONEY_STEP, rounding=ROUND_HALF_UP)
    return result


def clean_material(payload: Mapping[str, Any], errors: Dict[str, str], prefix: str = "") -> Dict[str, Any]:
    """Coerce a material payload and record problems in ``errors``.

    Negative quantities are rejected here rather than corrected later.
    Quantities and the rate are rounded half-up to their column scale.
    """

    cleaned: Dict[str, Any] = {}
    for field in MATERIAL_TEXT_FIELDS:
        cleaned[field] = strip_or_none(payload.get(field))
    for field, message in REQUIRED_MATERIAL_FIELDS.items():
        if not cleaned[field]:
            errors[prefix + field] = message
    for field in QUANTITY_FIELDS:
        cleaned[field] = parse_decimal(payload.get(field), prefix + field, errors, quantize=QUANTITY_SCALE)
    cleaned["rate"] = parse_decimal(payload.get("rate"), prefix + "rate", errors, quantize=MONEY_SCALE)
    return cleaned


def compute_payment(
    total_amount: Optional[Decimal], advance_paid: Optional[Decimal]
) -> Tuple[Optional[Decimal], PaymentStatus]:
    """Return ``(balance_amount, payment_status)`` for the given amounts."""

    advance = _as_decimal(advance_paid)
    balance = None if total_amount is None else max(ZERO, _as_decimal(total_amount) - advance)

    if advance == ZERO:
        status = PaymentStatus.PENDING
    elif total_amount is not None and advance >= _as_decimal(total_amount):
        status = PaymentStatus.PAID
    else:
        status = PaymentStatus.PARTIAL
    return balance, status
