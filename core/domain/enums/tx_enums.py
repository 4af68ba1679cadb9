from __future__ import annotations

from enum import StrEnum


class GasStrategy(StrEnum):
    """
    Padding applied on top of the node's gas estimate for chamber transactions.

    Farm calls default to BUFFERED; unwinds that touch many accounts may need
    AGGRESSIVE. Selected with FARM_GAS_STRATEGY.
    """

    DEFAULT = "default"
    BUFFERED = "buffered"
    AGGRESSIVE = "aggressive"

    @classmethod
    def parse(cls, value: str | None) -> "GasStrategy":
        raw = (value or "").strip().lower()
        if not raw:
            return cls.BUFFERED
        try:
            return cls(raw)
        except ValueError as exc:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown gas strategy '{value}' (expected one of: {allowed})") from exc
