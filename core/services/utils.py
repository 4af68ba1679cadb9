# core/services/utils.py
from collections.abc import Iterable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from hexbytes import HexBytes
from web3 import Web3


def to_json_safe(obj: Any) -> Any:
    """
    Recursively convert web3 receipts and chamber results into JSON primitives.

    - HexBytes / bytes -> "0x..." str
    - Decimal          -> str (no float rounding)
    - Enum             -> its value
    - Mapping          -> {k: to_json_safe(v)}   (covers AttributeDict)
    - list/tuple/set   -> [to_json_safe(v), ...]
    """
    if isinstance(obj, HexBytes):
        return Web3.to_hex(obj)

    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()

    if isinstance(obj, Decimal):
        return str(obj)

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj

    if isinstance(obj, Mapping):
        return {str(k): to_json_safe(v) for (k, v) in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [to_json_safe(v) for v in obj]

    if isinstance(obj, Iterable):
        return [to_json_safe(v) for v in obj]

    return str(obj)
