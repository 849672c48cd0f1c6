"""
Integer amount handling for on-chain quantities.
Values up to 2**256 are carried as decimal strings, never as floats.
"""

from decimal import Decimal
from typing import Tuple, Union

ACCUMULATED_SHARE_PERCENT = 20

AmountLike = Union[int, str, Decimal]


def to_int(amount: AmountLike) -> int:
    """Convert a stored or decoded amount to an exact integer"""
    if amount is None:
        return 0
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount}")
    if isinstance(amount, int):
        return amount
    if isinstance(amount, Decimal):
        if amount != amount.to_integral_value():
            raise ValueError(f"Amount is not integral: {amount}")
        return int(amount)
    if isinstance(amount, str):
        text = amount.strip()
        if not text:
            return 0
        if text.startswith(("0x", "0X")):
            return int(text, 16)
        return int(Decimal(text))
    raise ValueError(f"Invalid amount: {amount!r}")


def to_amount_string(amount: AmountLike) -> str:
    return str(to_int(amount))


def add_amounts(a: AmountLike, b: AmountLike) -> str:
    return str(to_int(a) + to_int(b))


def split_burn_amount(amount: AmountLike) -> Tuple[str, str]:
    """
    Split a burned amount into (accumulated, direct) shares.

    The accumulated share is 20% rounded down; the direct share receives
    the remainder so both always sum to the original amount.
    """
    total = to_int(amount)
    if total < 0:
        raise ValueError(f"Negative amount: {amount}")
    accumulated = total * ACCUMULATED_SHARE_PERCENT // 100
    direct = total - accumulated
    return str(accumulated), str(direct)
