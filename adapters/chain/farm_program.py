from __future__ import annotations

from typing import Any, Dict

from adapters.chain.call_batch import ChamberCallRouter
from core.domain.gateways.farm_gateway_interface import FarmGatewayInterface
from core.domain.schemas.instruction_types import ExternalInstruction
from core.services.authority import VaultAuthority
from core.services.exceptions import CpiInstructionFormationFailed
from core.services.instruction_codec import encode_instruction


class FarmProgramGateway(FarmGatewayInterface):
    """
    Hands encoded farm instructions to the call router; inside a request
    batch they are executed by the chamber program under its authority.

    Each instruction must name exactly the chamber authority as its signer.
    """

    def __init__(self, router: ChamberCallRouter):
        self.router = router

    def invoke(self, ix: ExternalInstruction, signer: VaultAuthority) -> Dict[str, Any]:
        signers = ix.signers()
        if signers != [signer.address]:
            raise CpiInstructionFormationFailed(
                f"{ix.op.value}: instruction signers {signers} do not match authority {signer.address}"
            )
        return self.router.write(ix.program_id, encode_instruction(ix), label=ix.op.value)
