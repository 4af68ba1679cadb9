from __future__ import annotations

from typing import Any

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from adapters.chain.call_batch import ChamberCallRouter
from core.domain.gateways.token_ledger_interface import TokenLedgerInterface
from core.services.exceptions import InsufficientFunds
from core.services.fixed_point import require_u64

ABI_TOKEN_LEDGER = [
    # ---- views
    {"name": "balanceOf", "inputs": [{"type": "address", "name": "account"}], "outputs": [{"type": "uint64"}], "stateMutability": "view", "type": "function"},
    {"name": "supply", "inputs": [{"type": "address", "name": "mint"}], "outputs": [{"type": "uint64"}], "stateMutability": "view", "type": "function"},
    {"name": "ownerOf", "inputs": [{"type": "address", "name": "account"}], "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},
    {"name": "mintOf", "inputs": [{"type": "address", "name": "account"}], "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},

    # ---- tx
    {"name": "transfer", "inputs": [
        {"type": "address", "name": "source"},
        {"type": "address", "name": "destination"},
        {"type": "uint64", "name": "amount"},
        {"type": "address", "name": "authority"},
    ], "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"name": "mintTo", "inputs": [
        {"type": "address", "name": "mint"},
        {"type": "address", "name": "destination"},
        {"type": "uint64", "name": "amount"},
        {"type": "address", "name": "authority"},
    ], "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"name": "burn", "inputs": [
        {"type": "address", "name": "mint"},
        {"type": "address", "name": "source"},
        {"type": "uint64", "name": "amount"},
        {"type": "address", "name": "owner"},
    ], "outputs": [], "stateMutability": "nonpayable", "type": "function"},
]

_VIEW_OUTPUT = {"balanceOf": "uint64", "supply": "uint64", "ownerOf": "address", "mintOf": "address"}


def _cs(addr: str) -> str:
    return Web3.to_checksum_address(addr)


class TokenLedgerAdapter(TokenLedgerInterface):
    """
    Token program client. Reads and writes go through the call router, so
    inside a request batch a balance already reflects the queued moves.
    """

    def __init__(self, w3: Web3, address: str, router: ChamberCallRouter):
        if not address:
            raise RuntimeError("TokenLedgerAdapter: address not configured")
        self.w3 = w3
        self.address = _cs(address)
        self.router = router
        self.contract: Contract = w3.eth.contract(address=self.address, abi=ABI_TOKEN_LEDGER)

    def _read(self, fn_name: str, *args: Any) -> Any:
        data = HexBytes(self.contract.encode_abi(fn_name, args=list(args)))
        raw = self.router.read(self.address, data)
        return self.w3.codec.decode([_VIEW_OUTPUT[fn_name]], raw)[0]

    def _write(self, fn_name: str, *args: Any) -> None:
        data = HexBytes(self.contract.encode_abi(fn_name, args=list(args)))
        self.router.write(self.address, data, label=fn_name)

    # ---------------- views ----------------

    def balance_of(self, account: str) -> int:
        return int(self._read("balanceOf", _cs(account)))

    def supply(self, mint: str) -> int:
        return int(self._read("supply", _cs(mint)))

    def owner_of(self, account: str) -> str:
        return str(self._read("ownerOf", _cs(account))).lower()

    def mint_of(self, account: str) -> str:
        return str(self._read("mintOf", _cs(account))).lower()

    # ---------------- tx ----------------

    def transfer(self, *, source: str, destination: str, amount: int, authority: str) -> None:
        require_u64(amount)
        held = self.balance_of(source)
        if amount > held:
            raise InsufficientFunds(f"Account {source} holds {held}, cannot transfer {amount}")
        self._write("transfer", _cs(source), _cs(destination), amount, _cs(authority))

    def mint_to(self, *, mint: str, destination: str, amount: int, authority: str) -> None:
        require_u64(amount)
        self._write("mintTo", _cs(mint), _cs(destination), amount, _cs(authority))

    def burn(self, *, mint: str, source: str, amount: int, owner: str) -> None:
        require_u64(amount)
        held = self.balance_of(source)
        if amount > held:
            raise InsufficientFunds(f"Account {source} holds {held}, cannot burn {amount}")
        self._write("burn", _cs(mint), _cs(source), amount, _cs(owner))
