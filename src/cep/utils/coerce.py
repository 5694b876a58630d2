"""Leaf value coercion for CAD export fields."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional

from cep.utils.logging import get_logger


logger = get_logger(__name__)

TRUE_VALUES = frozenset({"true", "1", "yes"})

# Bounds of the integer and bigint columns numbers are written to.
INT32_MAX = 2**31 - 1
INT64_MAX = 2**63 - 1


def is_nil(value: Optional[str], nil: bool = False) -> bool:
    """Return True for missing, empty, literal 'nil' or xsi:nil-marked values."""
    return nil or value is None or value == "" or value == "nil"


def as_text(value: Optional[str]) -> Optional[str]:
    """Empty strings become None."""
    return value if value else None


def as_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in TRUE_VALUES


def as_int(
    value: Optional[str], nil: bool = False, maximum: int = INT32_MAX
) -> Optional[int]:
    """Integer or None; values outside [-maximum - 1, maximum] are None."""
    if is_nil(value, nil):
        return None

    text = value.strip()
    try:
        number = int(text)
    except ValueError:
        # Accept integral decimals such as "3.0".
        parsed = _to_decimal(text)
        if parsed is None or parsed != parsed.to_integral_value():
            logger.warning("coerce.int.invalid value=%r", value)
            return None
        number = int(parsed)

    if not -maximum - 1 <= number <= maximum:
        logger.warning("coerce.int.out_of_range value=%r", value)
        return None
    return number


def as_decimal(value: Optional[str], nil: bool = False) -> Optional[Decimal]:
    if is_nil(value, nil):
        return None

    number = _to_decimal(value.strip())
    if number is None:
        logger.warning("coerce.decimal.invalid value=%r", value)
    return number


def _to_decimal(text: str) -> Optional[Decimal]:
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None
