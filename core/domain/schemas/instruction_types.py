from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from core.domain.enums.external_op_enums import ArgKind, ExternalOp


@dataclass(frozen=True)
class ArgSpec:
    name: str
    kind: ArgKind


@dataclass(frozen=True)
class AccountSpec:
    """
    One required account of an external operation.

    `name` is the role in the farm program's published interface.
    """

    name: str
    writable: bool = True
    signer: bool = False


@dataclass(frozen=True)
class OperationSchema:
    op: ExternalOp
    args: Tuple[ArgSpec, ...] = ()
    accounts: Tuple[AccountSpec, ...] = ()

    @property
    def arg_names(self) -> Tuple[str, ...]:
        return tuple(a.name for a in self.args)

    @property
    def account_names(self) -> Tuple[str, ...]:
        return tuple(a.name for a in self.accounts)


@dataclass(frozen=True)
class AccountMeta:
    address: str
    writable: bool
    signer: bool

    FLAG_WRITABLE = 0b01
    FLAG_SIGNER = 0b10

    @property
    def flags(self) -> int:
        out = 0
        if self.writable:
            out |= self.FLAG_WRITABLE
        if self.signer:
            out |= self.FLAG_SIGNER
        return out


@dataclass(frozen=True)
class ExternalInstruction:
    """
    A fully resolved call into the farm program, ready to be signed and sent.

    `data` holds selector + encoded arguments; `accounts` are in schema order.
    """

    op: ExternalOp
    program_id: str
    data: bytes
    accounts: Tuple[AccountMeta, ...]
    args: Dict[str, Any] = field(default_factory=dict)

    def signers(self) -> List[str]:
        return [a.address for a in self.accounts if a.signer]

    def account(self, name: str, schema: OperationSchema) -> AccountMeta:
        return self.accounts[schema.account_names.index(name)]
