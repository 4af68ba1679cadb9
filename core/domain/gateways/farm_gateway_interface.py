from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from core.domain.schemas.instruction_types import ExternalInstruction
from core.services.authority import VaultAuthority


class FarmGatewayInterface(ABC):
    """
    Executes one fully formed instruction against the leveraged-farm program.

    Implementations raise on failure; nothing is retried.
    """

    @abstractmethod
    def invoke(self, ix: ExternalInstruction, signer: VaultAuthority) -> Dict[str, Any]:
        raise NotImplementedError
