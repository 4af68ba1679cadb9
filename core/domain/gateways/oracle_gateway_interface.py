from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class OracleGatewayInterface(ABC):
    @abstractmethod
    def read_feed(self, address: str) -> bytes:
        """
        Raw bytes of the price account at `address`.
        """
        raise NotImplementedError

    def current_slot(self) -> Optional[int]:
        return None
