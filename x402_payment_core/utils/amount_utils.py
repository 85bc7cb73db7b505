"""
Conversion between human HBAR amounts and tinybars.

All conversions in the package go through here so issuer and executor agree
on rounding: human to minor units always truncates, never rounds up.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from ..exceptions import ValidationError, validation_failed

TINYBARS_PER_HBAR = 100_000_000

AmountLike = Union[Decimal, int, str, float]


def to_decimal(amount: AmountLike, field: str = "amount") -> Decimal:
    """Parse ``amount`` into a finite Decimal."""
    # float goes through str so 0.001 stays 0.001
    if isinstance(amount, float):
        amount = repr(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise validation_failed(field, amount, "not a decimal number", cause=e) from e
    if not value.is_finite():
        raise validation_failed(field, amount, "must be finite")
    return value


def to_minor_units(amount: AmountLike) -> int:
    """
    Convert HBAR to tinybars, truncating any fraction of a tinybar.

    >>> to_minor_units("0.001")
    100000
    """
    value = to_decimal(amount) * TINYBARS_PER_HBAR
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def to_human_units(minor_units: int) -> Decimal:
    """Convert tinybars to an exact HBAR Decimal."""
    return Decimal(minor_units) / Decimal(TINYBARS_PER_HBAR)


def parse_minor_units(value: Union[str, int], field: str = "maxAmountRequired") -> int:
    """
    Parse a wire amount (integer minor units as a string).

    Raises:
        ValidationError: If the value is not a non-negative integer
    """
    if isinstance(value, bool):
        raise validation_failed(field, value, "must be an integer amount")
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationError(
                f"Validation failed for {field}: must be a non-negative integer string",
                field=field,
                value=str(value),
            )
        parsed = int(text)
    if parsed < 0:
        raise validation_failed(field, value, "must not be negative")
    return parsed
