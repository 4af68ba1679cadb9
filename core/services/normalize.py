from __future__ import annotations

from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _norm(a: str | None) -> str:
    return (a or "").strip()


def _norm_lower(a: str | None) -> str:
    return _norm(a).lower()


def _require_address(name: str, addr: str | None) -> str:
    """
    Validate and lower-case an address; zero address is rejected.
    """
    addr = _norm_lower(addr)
    if not addr or not Web3.is_address(addr):
        raise ValueError(f"{name} must be a valid address.")
    if addr == ZERO_ADDRESS:
        raise ValueError(f"{name} must not be zero address.")
    return addr
