# core/services/price_feed.py

from __future__ import annotations

import struct
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.services.exceptions import InvalidOracleData, StaleOraclePrice
from core.services.fixed_point import to_decimal

PYTH_MAGIC = 0xA1B2C3D4
PYTH_VERSION = 2
PYTH_PRICE_ACCOUNT_TYPE = 3

STATUS_UNKNOWN = 0
STATUS_TRADING = 1
STATUS_HALTED = 2
STATUS_AUCTION = 3

# magic, ver, atype, size, ptype, expo
_HEADER = struct.Struct("<IIIIIi")
_VALID_SLOT = struct.Struct("<QQ")  # last_slot, valid_slot @32
_AGG = struct.Struct("<qQIIQ")  # price, conf, status, corp_act, pub_slot @208

_SLOTS_OFFSET = 32
_AGG_OFFSET = 208
MIN_PRICE_ACCOUNT_LEN = _AGG_OFFSET + _AGG.size


@dataclass(frozen=True)
class PriceAccount:
    expo: int
    price: int
    conf: int
    status: int
    pub_slot: int
    valid_slot: int

    @property
    def is_trading(self) -> bool:
        return self.status == STATUS_TRADING

    def ui_price(self) -> Decimal:
        return to_decimal(Decimal(self.price).scaleb(self.expo))


def parse_price_account(data: bytes) -> PriceAccount:
    """
    Decode the header and aggregate block of a Pyth v2 price account.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidOracleData("Oracle payload must be bytes")
    raw = bytes(data)
    if len(raw) < MIN_PRICE_ACCOUNT_LEN:
        raise InvalidOracleData(f"Oracle payload too short: {len(raw)} < {MIN_PRICE_ACCOUNT_LEN}")

    magic, ver, atype, _size, _ptype, expo = _HEADER.unpack_from(raw, 0)
    if magic != PYTH_MAGIC:
        raise InvalidOracleData("Oracle payload has a bad magic number")
    if ver != PYTH_VERSION:
        raise InvalidOracleData(f"Unsupported oracle version: {ver}")
    if atype != PYTH_PRICE_ACCOUNT_TYPE:
        raise InvalidOracleData(f"Oracle account is not a price account (type={atype})")

    _last_slot, valid_slot = _VALID_SLOT.unpack_from(raw, _SLOTS_OFFSET)
    price, conf, status, _corp_act, pub_slot = _AGG.unpack_from(raw, _AGG_OFFSET)

    return PriceAccount(
        expo=int(expo),
        price=int(price),
        conf=int(conf),
        status=int(status),
        pub_slot=int(pub_slot),
        valid_slot=int(valid_slot),
    )


def load_price(
    data: bytes,
    *,
    max_confidence_bps: Optional[int] = None,
    current_slot: Optional[int] = None,
    max_slot_age: Optional[int] = None,
) -> Decimal:
    """
    Parse an oracle payload and return the aggregate price as a checked Decimal.

    Raises:
        InvalidOracleData: payload cannot be decoded or carries a non-positive price.
        StaleOraclePrice: aggregate is not trading, its confidence interval is wider
            than `max_confidence_bps` of the price, or it was published more than
            `max_slot_age` slots before `current_slot`.
    """
    acc = parse_price_account(data)

    if not acc.is_trading:
        raise StaleOraclePrice(f"Oracle aggregate status is {acc.status}, expected trading")
    if acc.price <= 0:
        raise InvalidOracleData(f"Oracle price must be positive, got {acc.price}")

    if max_confidence_bps:
        if acc.conf * 10_000 > acc.price * int(max_confidence_bps):
            raise StaleOraclePrice(
                f"Oracle confidence too wide: conf={acc.conf} price={acc.price} max_bps={max_confidence_bps}"
            )

    if current_slot is not None and max_slot_age:
        if int(current_slot) - acc.pub_slot > int(max_slot_age):
            raise StaleOraclePrice(
                f"Oracle price is stale: pub_slot={acc.pub_slot} current_slot={current_slot}"
            )

    return acc.ui_price()

