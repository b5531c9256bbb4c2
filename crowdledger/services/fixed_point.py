"""Fixed-point conversion between ledger decimals and contract integers.

The contract stores every monetary value as an unsigned integer with 18
implied decimal places (the same scaling as wei). Conversion is exact in
both directions: an amount that cannot be represented is rejected rather
than rounded.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

from crowdledger.core.exceptions import ValidationError

DECIMALS = 18
SCALE = 10 ** DECIMALS


def to_fixed_point(amount: Union[Decimal, int, float, str], signed: bool = False) -> int:
    """Convert a ledger amount to an 18-decimal fixed-point integer.

    Floats are converted through ``str`` so ``0.1`` maps to exactly
    ``10**17``.

    Args:
        amount: Ledger amount
        signed: Allow negative values (contract fields are unsigned by default)

    Returns:
        Integer number of 1e-18 units

    Raises:
        ValidationError: For non-numeric input, more than 18 decimal places,
            or a negative value on an unsigned field
    """
    if isinstance(amount, bool):
        raise ValidationError("Fixed-point amount must be numeric")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Fixed-point amount must be numeric, got {amount!r}")

    if not value.is_finite():
        raise ValidationError(f"Fixed-point amount must be finite, got {amount!r}")
    if value < 0 and not signed:
        raise ValidationError(f"Amount {value} cannot be negative on an unsigned contract field")

    with localcontext() as ctx:
        ctx.prec = 80
        scaled = value.scaleb(DECIMALS)
        if scaled != scaled.to_integral_value():
            raise ValidationError(f"Amount {value} has more than {DECIMALS} decimal places")
        return int(scaled)


def from_fixed_point(value: Union[int, str]) -> Decimal:
    """Convert an 18-decimal fixed-point integer back to a ledger Decimal.

    Accepts the decimal string form the gateway uses for uint256 values.
    Trailing zeros are stripped, so ``10**18`` becomes ``Decimal("1")``.
    """
    if isinstance(value, bool):
        raise ValidationError("Fixed-point value must be an integer")
    try:
        raw = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Fixed-point value must be an integer, got {value!r}")

    with localcontext() as ctx:
        ctx.prec = 80
        result = Decimal(raw).scaleb(-DECIMALS)
        if result == result.to_integral_value():
            return result.quantize(Decimal(1))
        return result.normalize()
