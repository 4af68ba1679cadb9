"""
In-memory chain behind ChamberCallRouter: the token program, the farm
program and the chamber program's `execute` batch entry point.

Stands in for TxService (`w3`, `call_data`, `send_data`). A sent batch is
applied all-or-nothing; a call is applied to a copy and thrown away.
"""

from __future__ import annotations

import copy
from types import SimpleNamespace
from typing import Any, Dict, List

from web3 import Web3

from adapters.chain.token_ledger import ABI_TOKEN_LEDGER
from core.domain.enums.external_op_enums import ArgKind
from core.domain.enums.tx_enums import GasStrategy
from core.domain.schemas.instruction_types import AccountMeta, ExternalInstruction
from core.services.exceptions import TransactionRevertedError
from core.services.external_ops import OPERATION_CATALOG
from core.services.instruction_codec import SELECTOR_LEN, BinaryReader, selector
from tests.conftest import FakeFarm, FakeTokenLedger

ZERO_ADDRESS = "0x" + "00" * 20
EXECUTE_CALLS = "(address,bytes)[]"
EXECUTE_SELECTOR = bytes(Web3.keccak(text=f"execute({EXECUTE_CALLS})"))[:4]

_TOKEN_FNS = {
    bytes(Web3.keccak(text=f"{e['name']}({','.join(i['type'] for i in e['inputs'])})"))[:4]: (
        e["name"],
        [i["type"] for i in e["inputs"]],
    )
    for e in ABI_TOKEN_LEDGER
}

_FARM_OPS = {selector(op.value): schema for op, schema in OPERATION_CATALOG.items()}

_READ_ARG = {
    ArgKind.U8: BinaryReader.u8,
    ArgKind.U64: BinaryReader.u64,
    ArgKind.U128: BinaryReader.u128,
    ArgKind.BOOL: BinaryReader.boolean,
    ArgKind.ADDRESS: BinaryReader.address,
    ArgKind.ADDRESS_LIST: BinaryReader.address_list,
}


def decode_instruction(program_id: str, data: bytes) -> ExternalInstruction:
    schema = _FARM_OPS[bytes(data[:SELECTOR_LEN])]
    r = BinaryReader(data)
    r.raw(SELECTOR_LEN)
    for spec in schema.args:
        _READ_ARG[spec.kind](r)
    args_end = len(data) - r.remaining

    accounts = []
    for _ in range(r.u32()):
        address = r.address()
        flags = r.u8()
        accounts.append(
            AccountMeta(
                address=address,
                writable=bool(flags & AccountMeta.FLAG_WRITABLE),
                signer=bool(flags & AccountMeta.FLAG_SIGNER),
            )
        )
    r.finish()
    return ExternalInstruction(op=schema.op, program_id=program_id.lower(), data=bytes(data[:args_end]), accounts=tuple(accounts))


class FakeChain:
    def __init__(self, *, token_program: str, executor: str) -> None:
        self.w3 = Web3()
        self.token_program = token_program.lower()
        self.executor = executor.lower()
        self.tokens = FakeTokenLedger()
        self.farm = FakeFarm(self.tokens)
        self.sent: List[Dict[str, Any]] = []
        self.reads = 0

    # ---------------- state ----------------

    _FARM_STATE = ("calls", "attempts", "signers", "tranches", "staked", "pending", "holdings")

    def _state(self):
        return copy.deepcopy(
            (
                self.tokens.balances,
                self.tokens.supplies,
                {name: getattr(self.farm, name) for name in self._FARM_STATE},
            )
        )

    def _restore(self, state) -> None:
        self.tokens.balances, self.tokens.supplies, farm = state
        for name, value in farm.items():
            setattr(self.farm, name, value)

    # ---------------- TxService surface ----------------

    def call_data(self, *, to: str, data: bytes) -> bytes:
        self.reads += 1
        state = self._state()
        try:
            return self._apply(to, bytes(data))
        except Exception as exc:
            raise TransactionRevertedError(tx_hash="", msg=f"Call reverted: {exc}") from exc
        finally:
            self._restore(state)

    def send_data(self, *, to: str, data: bytes, wait: bool = True, gas_strategy: GasStrategy = GasStrategy.BUFFERED, **kw) -> Dict[str, Any]:
        tx_hash = "0x" + format(len(self.sent) + 1, "064x")
        tx = {"to": to.lower(), "data": bytes(data), "gas_strategy": gas_strategy, "tx_hash": tx_hash}
        self.sent.append(tx)

        state = self._state()
        try:
            self._apply(to, bytes(data))
        except Exception as exc:
            self._restore(state)
            tx["status"] = 0
            raise TransactionRevertedError(tx_hash=tx_hash, msg=f"Transaction reverted: {exc}") from exc
        tx["status"] = 1
        return {"tx_hash": tx_hash, "status": 1}

    @property
    def landed(self) -> List[Dict[str, Any]]:
        return [tx for tx in self.sent if tx["status"] == 1]

    # ---------------- programs ----------------

    def _apply(self, to: str, data: bytes) -> bytes:
        to = to.lower()
        if to == self.executor:
            return self._execute(data)
        if to == self.token_program:
            return self._token(data)
        ix = decode_instruction(to, data)
        signers = ix.signers()
        self.farm.invoke(ix, SimpleNamespace(address=signers[0] if signers else ZERO_ADDRESS))
        return b""

    def _execute(self, data: bytes) -> bytes:
        assert data[:4] == EXECUTE_SELECTOR
        (calls,) = self.w3.codec.decode([EXECUTE_CALLS], data[4:])
        results = [self._apply(target, bytes(payload)) for target, payload in calls]
        return self.w3.codec.encode(["bytes[]"], [results])

    def _token(self, data: bytes) -> bytes:
        name, types = _TOKEN_FNS[bytes(data[:4])]
        args = [a.lower() if isinstance(a, str) else a for a in self.w3.codec.decode(types, data[4:])]
        t = self.tokens
        if name == "balanceOf":
            return self.w3.codec.encode(["uint64"], [t.balance_of(args[0])])
        if name == "supply":
            return self.w3.codec.encode(["uint64"], [t.supply(args[0])])
        if name == "ownerOf":
            return self.w3.codec.encode(["address"], [t.owner_of(args[0]) or ZERO_ADDRESS])
        if name == "mintOf":
            return self.w3.codec.encode(["address"], [t.mint_of(args[0]) or ZERO_ADDRESS])
        if name == "transfer":
            t.transfer(source=args[0], destination=args[1], amount=args[2], authority=args[3])
        elif name == "mintTo":
            t.mint_to(mint=args[0], destination=args[1], amount=args[2], authority=args[3])
        elif name == "burn":
            t.burn(mint=args[0], source=args[1], amount=args[2], owner=args[3])
        return b""
