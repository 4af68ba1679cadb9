from decimal import Decimal
from typing import Any

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def sanitize_for_mongo(value: Any) -> Any:
    """
    Recursively make values acceptable to BSON.

    - ints outside int64 (u128 accumulators, u64 amounts) become strings
    - Decimals become strings
    - dicts, lists and tuples are walked
    """
    if isinstance(value, bool):
        return value

    if isinstance(value, int):
        if INT64_MIN <= value <= INT64_MAX:
            return value
        return str(value)

    if isinstance(value, Decimal):
        return str(value)

    if isinstance(value, dict):
        return {k: sanitize_for_mongo(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [sanitize_for_mongo(v) for v in value]

    return value
