# core/services/instruction_codec.py
"""
Binary codec shared by external instructions and persisted record layouts.

Fixed-width integers are little-endian, bools are one byte, addresses are
their 20 raw bytes and lists carry a u32 little-endian element count.
"""

from __future__ import annotations

import struct
from typing import Any, Dict, List, Mapping, Sequence

from web3 import Web3

from core.domain.enums.external_op_enums import ArgKind
from core.domain.schemas.instruction_types import ExternalInstruction, OperationSchema
from core.services.exceptions import CpiInstructionFormationFailed
from core.services.fixed_point import U8_MAX, U64_MAX, U128_MAX
from core.services.normalize import _norm_lower

SELECTOR_LEN = 8
ADDRESS_LEN = 20
U32_MAX = 2**32 - 1

_INT_KINDS = {
    ArgKind.U8: (1, U8_MAX),
    ArgKind.U64: (8, U64_MAX),
    ArgKind.U128: (16, U128_MAX),
}


def selector(wire_name: str, namespace: str = "global") -> bytes:
    """
    8-byte identifier of a logical name: keccak256("<namespace>:<name>")[:8].
    """
    return bytes(Web3.keccak(text=f"{namespace}:{wire_name}"))[:SELECTOR_LEN]


class BinaryWriter:
    def __init__(self) -> None:
        self._buf = bytearray()

    def raw(self, data: bytes) -> "BinaryWriter":
        self._buf += data
        return self

    def uint(self, value: int, width: int, max_value: int) -> "BinaryWriter":
        if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > max_value:
            raise ValueError(f"{value!r} does not fit in {width * 8} unsigned bits")
        self._buf += int(value).to_bytes(width, "little")
        return self

    def u8(self, value: int) -> "BinaryWriter":
        return self.uint(value, 1, U8_MAX)

    def u32(self, value: int) -> "BinaryWriter":
        return self.uint(value, 4, U32_MAX)

    def u64(self, value: int) -> "BinaryWriter":
        return self.uint(value, 8, U64_MAX)

    def u128(self, value: int) -> "BinaryWriter":
        return self.uint(value, 16, U128_MAX)

    def boolean(self, value: bool) -> "BinaryWriter":
        if not isinstance(value, bool):
            raise ValueError(f"{value!r} is not a bool")
        self._buf += b"\x01" if value else b"\x00"
        return self

    def address(self, value: str) -> "BinaryWriter":
        if not isinstance(value, str) or not Web3.is_address(value):
            raise ValueError(f"{value!r} is not an address")
        self._buf += Web3.to_bytes(hexstr=value)
        return self

    def address_list(self, values: Sequence[str]) -> "BinaryWriter":
        if isinstance(values, (str, bytes)):
            raise ValueError("address list must be a sequence of addresses")
        self.u32(len(values))
        for v in values:
            self.address(v)
        return self

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class BinaryReader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def _take(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise ValueError(f"Unexpected end of data at offset {self._pos} (wanted {n} bytes)")
        out = self._data[self._pos:end]
        self._pos = end
        return out

    def raw(self, n: int) -> bytes:
        return self._take(n)

    def uint(self, width: int) -> int:
        return int.from_bytes(self._take(width), "little")

    def u8(self) -> int:
        return self.uint(1)

    def u32(self) -> int:
        return self.uint(4)

    def u64(self) -> int:
        return self.uint(8)

    def u128(self) -> int:
        return self.uint(16)

    def boolean(self) -> bool:
        b = self.u8()
        if b > 1:
            raise ValueError(f"Invalid bool byte: {b}")
        return b == 1

    def address(self) -> str:
        return "0x" + self._take(ADDRESS_LEN).hex()

    def address_list(self) -> List[str]:
        return [self.address() for _ in range(self.u32())]

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def finish(self) -> None:
        if self.remaining:
            raise ValueError(f"{self.remaining} trailing bytes")


def encode_args(schema: OperationSchema, args: Mapping[str, Any]) -> bytes:
    """
    Serialize `args` in schema order, after the operation selector.

    Any missing, unexpected or out-of-range argument is an instruction
    formation failure.
    """
    unknown = set(args) - set(schema.arg_names)
    if unknown:
        raise CpiInstructionFormationFailed(
            f"{schema.op.value}: unexpected arguments {sorted(unknown)}"
        )

    w = BinaryWriter().raw(selector(schema.op.value))
    for spec in schema.args:
        if spec.name not in args:
            raise CpiInstructionFormationFailed(f"{schema.op.value}: missing argument '{spec.name}'")
        value = args[spec.name]
        try:
            if spec.kind in _INT_KINDS:
                width, max_value = _INT_KINDS[spec.kind]
                w.uint(value, width, max_value)
            elif spec.kind == ArgKind.BOOL:
                w.boolean(value)
            elif spec.kind == ArgKind.ADDRESS:
                w.address(value)
            elif spec.kind == ArgKind.ADDRESS_LIST:
                w.address_list(value)
            else:
                raise ValueError(f"unsupported kind {spec.kind}")
        except ValueError as exc:
            raise CpiInstructionFormationFailed(
                f"{schema.op.value}: bad argument '{spec.name}': {exc}"
            ) from exc
    return w.getvalue()


def decode_args(schema: OperationSchema, data: bytes) -> Dict[str, Any]:
    r = BinaryReader(data)
    if r.raw(SELECTOR_LEN) != selector(schema.op.value):
        raise ValueError(f"Selector does not match {schema.op.value}")
    out: Dict[str, Any] = {}
    for spec in schema.args:
        if spec.kind in _INT_KINDS:
            out[spec.name] = r.uint(_INT_KINDS[spec.kind][0])
        elif spec.kind == ArgKind.BOOL:
            out[spec.name] = r.boolean()
        elif spec.kind == ArgKind.ADDRESS:
            out[spec.name] = r.address()
        else:
            out[spec.name] = r.address_list()
    r.finish()
    return out


def encode_instruction(ix: ExternalInstruction) -> bytes:
    """
    Full wire form: selector + args, then the tagged account list.
    """
    w = BinaryWriter().raw(ix.data).u32(len(ix.accounts))
    for meta in ix.accounts:
        w.address(meta.address).u8(meta.flags)
    return w.getvalue()


def normalize_address(value: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return _norm_lower(value)
