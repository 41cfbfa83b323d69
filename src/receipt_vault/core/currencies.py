from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, DecimalException

from receipt_vault.core.errors import ValidationError

MINOR_UNITS_PER_MAJOR = 100
# Amount columns are 64-bit integers.
MAX_MINOR_UNITS = 2**63 - 1


def amount_to_minor_units(amount: float | int | str | Decimal) -> int:
    """Convert a major-unit amount (dollars) to integer minor units (cents).

    Truncates instead of rounding: ``25.999 -> 2599``. Floats go through their shortest
    repr so ``25.99`` stays 2599 rather than falling to 2598 on binary error.
    """
    if isinstance(amount, bool):
        raise ValidationError(f"amount is not a number: {amount!r}")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
        if not value.is_finite():
            raise ValidationError(f"amount is not finite: {amount!r}")
        if value < 0:
            raise ValidationError(f"amount must not be negative: {amount!r}")
        cents = int((value * MINOR_UNITS_PER_MAJOR).to_integral_value(rounding=ROUND_FLOOR))
    except DecimalException as e:
        raise ValidationError(f"amount is not a usable number: {amount!r}") from e
    if cents > MAX_MINOR_UNITS:
        raise ValidationError(f"amount is too large: {amount!r}")
    return cents


def format_minor_units(amount: int) -> str:
    major = Decimal(amount) / MINOR_UNITS_PER_MAJOR
    return str(major.quantize(Decimal("0.01")))
