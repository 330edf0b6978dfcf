from __future__ import annotations

from decimal import Decimal

CENT = Decimal("0.01")


def from_base_units(value: int, decimals: int) -> Decimal:
    """Convert an integer base-unit amount (sats, wei, lamports) to whole units.

    Args:
        value: Integer amount expressed with ``decimals`` decimal places.
        decimals: Decimal precision of ``value``.

    Returns:
        The exact amount in whole units.

    Raises:
        ValueError: If ``decimals`` is negative.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    return Decimal(value).scaleb(-decimals)


def to_decimal(value: object) -> Decimal:
    """Parse a JSON number or numeric string without going through float.

    Raises:
        ValueError: If the value is not numeric or not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric value: {value!r}")
    try:
        result = Decimal(str(value))
    except Exception as e:
        raise ValueError(f"Not a numeric value: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite value: {value!r}")
    return result


def to_usd(value: Decimal) -> Decimal:
    """Quantize a USD amount to cents."""
    return value.quantize(CENT)
