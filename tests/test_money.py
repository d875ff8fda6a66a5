from decimal import Decimal

import pytest

from medicine_corner.core.errors import ValidationError
from medicine_corner.services.money import (
    D,
    clamp,
    cost6,
    money2,
    non_negative,
    payment_status,
    require_non_negative,
    require_positive_quantity,
)


def test_parse_empty_values_as_zero():
    assert D(None) == Decimal("0")
    assert D("") == Decimal("0")
    assert D(" 12.50 ") == Decimal("12.50")
    assert D(3) == Decimal("3")


@pytest.mark.parametrize("raw", ["abc", "1,000", "NaN", "Infinity"])
def test_garbage_is_rejected(raw):
    with pytest.raises(ValidationError) as ei:
        D(raw, "amount")
    assert ei.value.code == "invalid_number"
    assert ei.value.field == "amount"


def test_rounding_is_half_up():
    assert money2("2.345") == Decimal("2.35")
    assert money2("2.344") == Decimal("2.34")
    assert cost6("10.6666666") == Decimal("10.666667")


def test_non_negative_and_clamp():
    assert non_negative("-5") == Decimal("0")
    assert non_negative("5") == Decimal("5")
    assert clamp("150", "0", "100") == Decimal("100")
    assert clamp("-1", "0", "100") == Decimal("0")
    assert clamp("40", "0", "100") == Decimal("40")


def test_payment_status():
    assert payment_status(0, 100) == "paid"
    assert payment_status(100, 0) == "pending"
    assert payment_status(50, 50) == "partial"
    # nothing due and nothing paid (free item) counts as paid
    assert payment_status(0, 0) == "paid"


def test_require_positive_quantity():
    assert require_positive_quantity("5") == 5
    for bad in (0, -1, "2.5"):
        with pytest.raises(ValidationError) as ei:
            require_positive_quantity(bad)
        assert ei.value.code == "invalid_quantity"


def test_require_non_negative():
    assert require_non_negative("0", "tax") == Decimal("0")
    with pytest.raises(ValidationError) as ei:
        require_non_negative("-0.01", "tax")
    assert ei.value.code == "negative_amount"
    assert ei.value.field == "tax"
