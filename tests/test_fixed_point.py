from decimal import Decimal

import pytest

from core.services.exceptions import MathOverflow
from core.services.fixed_point import (
    MAX_DECIMAL,
    U64_MAX,
    U128_MAX,
    checked_add_u128,
    checked_sub_u128,
    require_u64,
    to_decimal,
    try_add,
    try_ceil_u64,
    try_div,
    try_floor_u64,
    try_mul,
    try_sub,
    value_of,
)


def test_division_truncates_to_eighteen_places():
    assert try_div(1, 3) == Decimal("0.333333333333333333")
    assert try_div(2, 3) == Decimal("0.666666666666666666")


@pytest.mark.parametrize(
    "op, a, b",
    [
        (try_sub, 1, 2),
        (try_div, 1, 0),
        (try_mul, MAX_DECIMAL, 2),
        (try_add, MAX_DECIMAL, 1),
    ],
)
def test_checked_ops_raise_instead_of_wrapping(op, a, b):
    with pytest.raises(MathOverflow):
        op(a, b)


def test_to_decimal_rejects_negative_and_bool():
    with pytest.raises(MathOverflow):
        to_decimal(-1)
    with pytest.raises(TypeError):
        to_decimal(True)
    with pytest.raises(TypeError):
        to_decimal(1.5)


@pytest.mark.parametrize(
    "value, floor, ceil",
    [
        (Decimal("1500"), 1500, 1500),
        (Decimal("1501.5"), 1501, 1502),
        (Decimal("0.000000000000000001"), 0, 1),
    ],
)
def test_floor_and_ceil(value, floor, ceil):
    assert try_floor_u64(value) == floor
    assert try_ceil_u64(value) == ceil


def test_floor_rejects_values_beyond_u64():
    with pytest.raises(MathOverflow):
        try_floor_u64(U64_MAX + 1)


@pytest.mark.parametrize("value", [-1, U64_MAX + 1, True, "5"])
def test_require_u64_rejects(value):
    with pytest.raises(MathOverflow):
        require_u64(value)


def test_u128_accumulators():
    assert checked_add_u128(U128_MAX - 1, 1) == U128_MAX
    with pytest.raises(MathOverflow):
        checked_add_u128(U128_MAX, 1)
    assert checked_sub_u128(10, 10) == 0
    with pytest.raises(MathOverflow):
        checked_sub_u128(10, 11)


def test_value_of_scales_by_decimals():
    # 2.5 tokens of a 6-decimals mint at 20.0
    assert value_of(2_500_000, Decimal(20), 10**6) == Decimal(50)
    assert value_of(1000, Decimal(1), 1) == Decimal(1000)
