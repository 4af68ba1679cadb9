# core/services/shares.py

from __future__ import annotations

from decimal import Decimal

from core.services.exceptions import InsufficientFunds, MathOverflow
from core.services.fixed_point import (
    Number,
    to_decimal,
    try_ceil_u64,
    try_div,
    try_floor_u64,
    try_mul,
)

SHARES_DECIMALS = 6
ONE_SHARE = 10**SHARES_DECIMALS


def shares_for_value(value: Number, supply: int, pooled_value: Number) -> int:
    """
    Shares to issue for a deposit worth `value`, floored.

    The rate is supply / pooled_value measured before the deposit lands.
    An empty chamber (no supply, or nothing pooled yet) issues one whole
    share per unit of value. Outstanding supply over a zero pooled value
    cannot be priced and fails as a division by zero.
    """
    pooled = to_decimal(pooled_value)
    if supply == 0:
        return try_floor_u64(try_mul(value, ONE_SHARE))
    if pooled == 0:
        raise MathOverflow("Chamber has outstanding shares but zero pooled value")
    rate = try_div(supply, pooled)
    return try_floor_u64(try_mul(value, rate))


def value_for_shares(shares: int, supply: int, pooled_value: Number) -> Decimal:
    """
    Pro-rata value redeemable by `shares`: pooled_value * shares / supply.

    Returned as a Decimal truncated to the fixed-point grid, so a holder never
    receives more than their exact share.
    """
    if shares > supply:
        raise InsufficientFunds(f"Cannot redeem {shares} shares out of a supply of {supply}")
    if supply == 0:
        return to_decimal(0)
    return try_div(try_mul(pooled_value, shares), supply)


def shares_to_burn(value: Number, supply: int, pooled_value: Number) -> int:
    """
    Shares a withdrawal of `value` costs, rounded up against the withdrawer.
    """
    pooled = to_decimal(pooled_value)
    if pooled == 0 or supply == 0:
        raise InsufficientFunds("Chamber holds no redeemable value")
    return try_ceil_u64(try_div(try_mul(value, supply), pooled))


def pro_rata_amount(amount: int, shares: int, supply: int) -> int:
    """
    Floor of amount * shares / supply for raw token amounts.
    """
    if supply == 0:
        return 0
    return try_floor_u64(try_div(try_mul(amount, shares), supply))
