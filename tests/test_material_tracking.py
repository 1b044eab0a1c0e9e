from decimal import Decimal

import pytest

from job_worker.tracking import clean_material, compute_payment, recompute_material
from models import PaymentStatus


def _entry(**quantities):
    entry = {"item_id": "FAB-1", "item_name": "Cotton", "unit": "m"}
    entry.update({key: Decimal(str(value)) for key, value in quantities.items()})
    return entry


@pytest.mark.parametrize(
    "quantities, remaining",
    [
        ({"quantity_given": 100, "quantity_used": 40, "quantity_returned": 20, "quantity_wasted": 5}, "35"),
        ({"quantity_given": 10, "quantity_used": 8, "quantity_wasted": 5}, "0"),
        ({"quantity_given": 12.5, "quantity_used": 2.25}, "10.25"),
        ({}, "0"),
    ],
)
def test_recompute_material_remaining(quantities, remaining):
    result = recompute_material(_entry(**quantities))
    assert result["quantity_remaining"] == Decimal(remaining)
    assert result["quantity_remaining"] >= 0


def test_recompute_material_keeps_raw_quantities():
    result = recompute_material(_entry(quantity_given=10, quantity_used=8, quantity_wasted=5))
    assert result["quantity_used"] == Decimal("8")
    assert result["quantity_wasted"] == Decimal("5")
    assert result["item_name"] == "Cotton"


@pytest.mark.parametrize(
    "rate, expected",
    [
        (None, None),
        ("0", Decimal("0.00")),
        ("12.5", Decimal("1250.00")),
        ("0.333", Decimal("33.30")),
    ],
)
def test_recompute_material_total_value(rate, expected):
    entry = _entry(quantity_given=100)
    entry["rate"] = None if rate is None else Decimal(rate)
    assert recompute_material(entry)["total_value"] == expected


def test_recompute_material_does_not_mutate_input():
    entry = _entry(quantity_given=5)
    recompute_material(entry)
    assert "quantity_remaining" not in entry


def test_clean_material_reports_missing_and_negative_fields():
    errors = {}
    clean_material({"item_name": " ", "quantity_used": "-2", "rate": "abc"}, errors, prefix="materials.0.")
    assert errors["materials.0.item_id"] == "Item is required."
    assert errors["materials.0.item_name"] == "Item name is required."
    assert errors["materials.0.unit"] == "Unit is required."
    assert "materials.0.quantity_used" in errors
    assert errors["materials.0.rate"] == "Must be a number."


@pytest.mark.parametrize(
    "field, raw, expected",
    [
        ("quantity_given", "1.0004", Decimal("1.000")),
        ("quantity_used", "0.0005", Decimal("0.001")),
        ("quantity_wasted", 2.5, Decimal("2.500")),
        ("rate", "0.125", Decimal("0.13")),
        ("rate", 0.124, Decimal("0.12")),
    ],
)
def test_clean_material_rounds_to_column_scale(field, raw, expected):
    errors = {}
    cleaned = clean_material({"item_id": "FAB-1", "item_name": "Cotton", "unit": "m", field: raw}, errors)
    assert errors == {}
    assert cleaned[field] == expected
    assert cleaned[field].as_tuple().exponent == expected.as_tuple().exponent


@pytest.mark.parametrize(
    "total, advance, balance, status",
    [
        ("10000", "4000", "6000", PaymentStatus.PARTIAL),
        ("10000", "0", "10000", PaymentStatus.PENDING),
        ("10000", "10000", "0", PaymentStatus.PAID),
        ("10000", "12000", "0", PaymentStatus.PAID),
        (None, "0", None, PaymentStatus.PENDING),
        (None, "500", None, PaymentStatus.PARTIAL),
        ("0", "0", "0", PaymentStatus.PENDING),
    ],
)
def test_compute_payment(total, advance, balance, status):
    result_balance, result_status = compute_payment(
        None if total is None else Decimal(total), Decimal(advance)
    )
    assert result_balance == (None if balance is None else Decimal(balance))
    assert result_status == status
