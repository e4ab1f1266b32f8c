"""
Money coercion and rounding.

Amounts are ``Decimal`` end to end.  ``round_money`` is applied where an
amount is emitted (a stored settlement, a figure handed back to a caller),
never part-way through a calculation.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

PENCE = Decimal("0.01")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int/str/Decimal amount to Decimal.

    Raises TypeError for floats and ValueError for anything that is not
    a finite number.
    """
    if isinstance(value, float):
        raise TypeError("Money amounts must not be float")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a money amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not a finite money amount: {value!r}")
    return result


def round_money(value: Decimal) -> Decimal:
    """Round half-up to whole pence."""
    return value.quantize(PENCE, rounding=ROUND_HALF_UP)
