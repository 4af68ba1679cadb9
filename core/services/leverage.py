# core/services/leverage.py

from __future__ import annotations

from decimal import Decimal
from typing import Tuple

from core.services.exceptions import MathOverflow
from core.services.fixed_point import Number, try_div, try_floor_u64, try_mul

# Pseudo delta-neutral pairing: three parts of leveraged volatile exposure
# against one part of underlying exposure.
VOLATILE_PARTS = 3
UNDERLYING_PARTS = 1
TOTAL_PARTS = VOLATILE_PARTS + UNDERLYING_PARTS


def _borrow_target(total_value: Number, parts: int, leverage_extra: int, price: Number) -> int:
    scaled = try_div(try_mul(total_value, parts), TOTAL_PARTS)
    return try_floor_u64(try_div(try_mul(scaled, leverage_extra), price))


def split_borrow(
    total_value: Number,
    leverage: int,
    is_base_volatile: bool,
    volatile_price: Number,
    underlying_price: Number,
) -> Tuple[int, int]:
    """
    Split a deposit value into (base_borrow, quote_borrow) raw token amounts.

    volatile   = floor(total_value * 3/4 * (leverage - 1) / volatile_price)
    underlying = floor(total_value * 1/4 * (leverage - 1) / underlying_price)

    `is_base_volatile` decides which side of the pair is the volatile one.
    Leverage is not re-validated here: anything below 1 underflows the
    unsigned `leverage - 1` and fails with MathOverflow.
    """
    if isinstance(leverage, bool) or int(leverage) < 1:
        raise MathOverflow(f"leverage - 1 underflows for leverage={leverage}")
    leverage_extra = int(leverage) - 1

    volatile_borrow = _borrow_target(total_value, VOLATILE_PARTS, leverage_extra, volatile_price)
    underlying_borrow = _borrow_target(total_value, UNDERLYING_PARTS, leverage_extra, underlying_price)

    if is_base_volatile:
        return volatile_borrow, underlying_borrow
    return underlying_borrow, volatile_borrow


def pair_prices(is_base_volatile: bool, base_price: Decimal, quote_price: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Order (base_price, quote_price) as (volatile_price, underlying_price).
    """
    if is_base_volatile:
        return base_price, quote_price
    return quote_price, base_price
