"""Money conversion helpers - Decimal currency units <-> integer cents"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to whole cents (half up)"""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Optional[Decimal]) -> Optional[int]:
    """Convert a currency amount to integer minor units"""
    if amount is None:
        return None
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: Optional[int]) -> Optional[Decimal]:
    """Convert integer minor units back to a 2-place Decimal"""
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)


def _is_thousands_grouping(token: str, separator: str) -> bool:
    parts = token.split(separator)
    return (
        len(parts) > 1
        and 1 <= len(parts[0]) <= 3
        and all(len(p) == 3 for p in parts[1:])
        and all(p.isdigit() for p in parts)
    )


def parse_amount_token(raw: str) -> Optional[Decimal]:
    """
    Parse a currency amount as written in a notification.

    Handles both "12,500.00" and Colombian-style "45.000" / "1.234,50":
    - both separators present: the last one is the decimal mark
    - a single separator kind followed only by 3-digit groups: thousands
    - otherwise: decimal mark

    Returns None when the token is not a number.
    """
    token = raw.replace("$", "").replace(" ", "").replace("\u00a0", "").strip()
    if not token:
        return None

    has_dot = "." in token
    has_comma = "," in token

    if has_dot and has_comma:
        decimal_mark = "." if token.rfind(".") > token.rfind(",") else ","
        thousands = "," if decimal_mark == "." else "."
        token = token.replace(thousands, "").replace(decimal_mark, ".")
    elif has_dot or has_comma:
        separator = "." if has_dot else ","
        if _is_thousands_grouping(token, separator):
            token = token.replace(separator, "")
        elif token.count(separator) == 1:
            token = token.replace(separator, ".")
        else:
            return None

    try:
        return quantize_money(Decimal(token))
    except InvalidOperation:
        return None
