# core/services/fixed_point.py
"""
Checked fixed-point arithmetic used by every valuation in the chamber.

Values are `decimal.Decimal` kept inside the range of the farm backend's WAD
decimal: an unsigned 192-bit integer scaled by 10**18. Every operation
truncates to 18 fractional digits (toward zero, like integer WAD math) and
raises `MathOverflow` instead of wrapping, going negative or dividing by zero.
Integer token units are only produced at the very end, through floor/ceil
helpers that range-check the result.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import (
    ROUND_CEILING,
    ROUND_DOWN,
    ROUND_FLOOR,
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    InvalidOperation,
    Overflow,
)
from typing import Iterator, Union

from core.services.exceptions import MathOverflow

WAD_PLACES = 18

U8_MAX = 2**8 - 1
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1
U192_MAX = 2**192 - 1

_QUANTUM = Decimal(1).scaleb(-WAD_PLACES)
_CTX = Context(prec=96, rounding=ROUND_DOWN, traps=[InvalidOperation, DivisionByZero, Overflow])

MAX_DECIMAL = _CTX.divide(Decimal(U192_MAX), Decimal(10**WAD_PLACES))

Number = Union[Decimal, int]


@contextmanager
def _checked_math() -> Iterator[None]:
    try:
        yield
    except DecimalException as exc:
        raise MathOverflow(f"Decimal operation failed: {exc.__class__.__name__}") from exc


def _bound(d: Decimal) -> Decimal:
    if not d.is_finite() or d < 0 or d > MAX_DECIMAL:
        raise MathOverflow()
    return d.quantize(_QUANTUM, rounding=ROUND_DOWN, context=_CTX)


def to_decimal(value: Number) -> Decimal:
    """
    Lift an integer amount or a Decimal into the checked fixed-point range.
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a numeric amount")
    if isinstance(value, int):
        value = Decimal(value)
    if not isinstance(value, Decimal):
        raise TypeError(f"Unsupported numeric type: {type(value).__name__}")
    with _checked_math():
        return _bound(value)


def try_add(a: Number, b: Number) -> Decimal:
    with _checked_math():
        return _bound(_CTX.add(to_decimal(a), to_decimal(b)))


def try_sub(a: Number, b: Number) -> Decimal:
    with _checked_math():
        return _bound(_CTX.subtract(to_decimal(a), to_decimal(b)))


def try_mul(a: Number, b: Number) -> Decimal:
    with _checked_math():
        return _bound(_CTX.multiply(to_decimal(a), to_decimal(b)))


def try_div(a: Number, b: Number) -> Decimal:
    divisor = to_decimal(b)
    if divisor == 0:
        raise MathOverflow("Division by zero")
    with _checked_math():
        return _bound(_CTX.divide(to_decimal(a), divisor))


def try_floor_u64(value: Number) -> int:
    d = to_decimal(value)
    with _checked_math():
        out = int(d.to_integral_value(rounding=ROUND_FLOOR, context=_CTX))
    return require_u64(out)


def try_ceil_u64(value: Number) -> int:
    d = to_decimal(value)
    with _checked_math():
        out = int(d.to_integral_value(rounding=ROUND_CEILING, context=_CTX))
    return require_u64(out)


def require_u64(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > U64_MAX:
        raise MathOverflow(f"Value out of u64 range: {value!r}")
    return value


def checked_add_u128(a: int, b: int) -> int:
    out = int(a) + int(b)
    if a < 0 or b < 0 or out > U128_MAX:
        raise MathOverflow("u128 accumulator overflow")
    return out


def checked_sub_u128(a: int, b: int) -> int:
    out = int(a) - int(b)
    if a < 0 or b < 0 or out < 0:
        raise MathOverflow("u128 accumulator underflow")
    return out


def value_of(amount: int, price: Number, decimals: int) -> Decimal:
    """
    Monetary value of `amount` raw token units: price * amount / decimals.

    `decimals` is the token's decimal scale (the divisor, e.g. 10**6 for a
    6-decimals mint), not the exponent.
    """
    require_u64(amount)
    require_u64(decimals)
    return try_div(try_mul(price, amount), decimals)
