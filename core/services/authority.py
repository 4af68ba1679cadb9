# core/services/authority.py
"""
Deterministic address derivation for chamber-owned accounts.

An address is the last 20 bytes of keccak256(seed_0 ‖ … ‖ seed_n ‖ program_id).
String seeds are utf-8 encoded, address seeds contribute their 20 raw bytes
and small integers (nonce, bump) a single byte.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from web3 import Web3

from core.services.exceptions import InvalidChamberAuthority
from core.services.fixed_point import U8_MAX
from core.services.normalize import _require_address

CHAMBER_SEED = "chamber"
CHAMBER_AUTHORITY_SEED = "chamber_authority"
USER_ACCOUNT_SEED = "user_account"

Seed = Union[str, bytes, int]


def _seed_bytes(seed: Seed) -> bytes:
    if isinstance(seed, bool):
        raise ValueError("bool is not a valid seed")
    if isinstance(seed, int):
        if seed < 0 or seed > U8_MAX:
            raise ValueError(f"integer seed must fit in one byte: {seed}")
        return bytes([seed])
    if isinstance(seed, (bytes, bytearray)):
        return bytes(seed)
    if Web3.is_address(seed):
        return Web3.to_bytes(hexstr=seed)
    return seed.encode("utf-8")


def derive_address(seeds: Sequence[Seed], program_id: str) -> str:
    program = _require_address("program_id", program_id)
    preimage = b"".join(_seed_bytes(s) for s in seeds) + Web3.to_bytes(hexstr=program)
    return "0x" + bytes(Web3.keccak(preimage))[-20:].hex()


def derive_chamber_address(*, farm: str, base_mint: str, quote_mint: str, nonce: int, program_id: str) -> str:
    return derive_address(
        [CHAMBER_SEED, _require_address("farm", farm), _require_address("base_mint", base_mint),
         _require_address("quote_mint", quote_mint), nonce],
        program_id,
    )


def derive_authority_address(*, chamber: str, bump: int, program_id: str) -> str:
    return derive_address([CHAMBER_AUTHORITY_SEED, _require_address("chamber", chamber), bump], program_id)


def derive_user_account_address(*, chamber: str, user: str, program_id: str) -> str:
    return derive_address(
        [USER_ACCOUNT_SEED, _require_address("chamber", chamber), _require_address("user", user)],
        program_id,
    )


@dataclass(frozen=True)
class VaultAuthority:
    """
    Signing capability of one chamber.

    Handed explicitly to the orchestrator; every external call made on the
    chamber's behalf lists `address` as its only signer.
    """

    chamber: str
    bump: int
    address: str

    @classmethod
    def derive(cls, *, chamber: str, bump: int, program_id: str) -> "VaultAuthority":
        chamber = _require_address("chamber", chamber)
        return cls(
            chamber=chamber,
            bump=int(bump),
            address=derive_authority_address(chamber=chamber, bump=bump, program_id=program_id),
        )

    def require_matches(self, *, chamber: str, authority: str) -> None:
        if self.chamber != chamber.lower() or self.address != authority.lower():
            raise InvalidChamberAuthority(
                f"Authority {self.address} is not the signer of chamber {chamber}"
            )
