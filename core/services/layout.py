# core/services/layout.py
"""
Binary layout of the persisted chamber and user-account records.

    Chamber     = discriminator ‖ strategy ‖ vault ‖ config
    UserAccount = discriminator ‖ chamber ‖ user ‖ shares ‖ status
                  ‖ locked_base ‖ locked_quote ‖ locked_shares

Enum variants are one-byte indexes in declaration order. Only the fields of
the record itself are laid out; Mongo bookkeeping (ids, timestamps, farm
wiring) is not part of it.
"""

from __future__ import annotations

from typing import Any, Dict

from core.domain.entities.chamber_entity import ChamberEntity
from core.domain.entities.user_account_entity import UserAccountEntity
from core.domain.enums.chamber_enums import ChamberMarket, UserAccountStatus
from core.services.instruction_codec import SELECTOR_LEN, BinaryReader, BinaryWriter, selector

CHAMBER_DISCRIMINATOR = selector("Chamber", namespace="account")
USER_ACCOUNT_DISCRIMINATOR = selector("UserAccount", namespace="account")

_MARKETS = list(ChamberMarket)
_STATUSES = list(UserAccountStatus)


def _variant_index(members: list, value: Any) -> int:
    for i, m in enumerate(members):
        if m == value:
            return i
    raise ValueError(f"Unknown variant: {value!r}")


def _variant(members: list, index: int):
    if index >= len(members):
        raise ValueError(f"Unknown variant index: {index}")
    return members[index]


def _expect_discriminator(r: BinaryReader, expected: bytes, name: str) -> None:
    if r.raw(SELECTOR_LEN) != expected:
        raise ValueError(f"Data is not a {name} record")


def pack_chamber(chamber: ChamberEntity) -> bytes:
    s, v, c = chamber.strategy, chamber.vault, chamber.config
    w = BinaryWriter().raw(CHAMBER_DISCRIMINATOR)

    w.u8(_variant_index(_MARKETS, s.market)).address(s.farm).address(s.farm_program)
    w.u64(s.leverage).boolean(s.is_base_volatile)

    for addr in (v.base, v.quote, v.base_mint, v.quote_mint, v.base_oracle, v.quote_oracle):
        w.address(addr)
    w.u64(v.base_decimals).u64(v.quote_decimals)
    w.u128(v.base_amount).u128(v.quote_amount)

    w.address(c.authority).u8(c.authority_bump)
    w.address(c.owner).address(c.fee_manager).address(c.shares_mint)
    w.u8(c.nonce)
    return w.getvalue()


def unpack_chamber(data: bytes) -> Dict[str, Any]:
    """
    Decode a chamber record into the `strategy` / `vault` / `config` mapping
    accepted by ChamberEntity.
    """
    r = BinaryReader(data)
    _expect_discriminator(r, CHAMBER_DISCRIMINATOR, "Chamber")

    strategy = {
        "market": _variant(_MARKETS, r.u8()).value,
        "farm": r.address(),
        "farm_program": r.address(),
        "leverage": r.u64(),
        "is_base_volatile": r.boolean(),
    }
    vault: Dict[str, Any] = {}
    for name in ("base", "quote", "base_mint", "quote_mint", "base_oracle", "quote_oracle"):
        vault[name] = r.address()
    vault["base_decimals"] = r.u64()
    vault["quote_decimals"] = r.u64()
    vault["base_amount"] = r.u128()
    vault["quote_amount"] = r.u128()

    config = {
        "authority": r.address(),
        "authority_bump": r.u8(),
        "owner": r.address(),
        "fee_manager": r.address(),
        "shares_mint": r.address(),
        "nonce": r.u8(),
    }
    r.finish()
    return {"strategy": strategy, "vault": vault, "config": config}


def pack_user_account(account: UserAccountEntity) -> bytes:
    return (
        BinaryWriter()
        .raw(USER_ACCOUNT_DISCRIMINATOR)
        .address(account.chamber)
        .address(account.user)
        .address(account.shares)
        .u8(_variant_index(_STATUSES, account.status))
        .u64(account.locked_base_amount)
        .u64(account.locked_quote_amount)
        .u64(account.locked_shares_amount)
        .getvalue()
    )


def unpack_user_account(data: bytes) -> Dict[str, Any]:
    r = BinaryReader(data)
    _expect_discriminator(r, USER_ACCOUNT_DISCRIMINATOR, "UserAccount")
    out = {
        "chamber": r.address(),
        "user": r.address(),
        "shares": r.address(),
        "status": _variant(_STATUSES, r.u8()).value,
        "locked_base_amount": r.u64(),
        "locked_quote_amount": r.u64(),
        "locked_shares_amount": r.u64(),
    }
    r.finish()
    return out
