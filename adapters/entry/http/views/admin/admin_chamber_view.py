from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from adapters.entry.http.dtos.chamber_dtos import InitializeChamberRequest
from adapters.entry.http.views.admin.admin_auth import AdminPrincipal, require_admin
from adapters.entry.http.views.chamber_errors import to_http_error
from core.services.utils import to_json_safe
from core.use_cases.chamber_admin_usecase import ChamberAdminUseCase

router = APIRouter(prefix="/admin", tags=["admin"])


def get_use_case() -> ChamberAdminUseCase:
    return ChamberAdminUseCase.from_settings()


@router.post("/chambers")
async def initialize_chamber(
    body: InitializeChamberRequest,
    admin: AdminPrincipal = Depends(require_admin),
    use_case: ChamberAdminUseCase = Depends(get_use_case),
):
    """
    Create a chamber, register its farm position and persist it to MongoDB.
    """
    try:
        out = await run_in_threadpool(
            use_case.initialize,
            market=body.market,
            farm=body.farm,
            farm_program=body.farm_program,
            leverage=body.leverage,
            is_base_volatile=body.is_base_volatile,
            nonce=body.nonce,
            authority_bump=body.authority_bump,
            base=body.base,
            quote=body.quote,
            base_mint=body.base_mint,
            quote_mint=body.quote_mint,
            base_oracle=body.base_oracle,
            quote_oracle=body.quote_oracle,
            base_decimals=body.base_decimals,
            quote_decimals=body.quote_decimals,
            owner=body.owner or admin.wallet_address,
            fee_manager=body.fee_manager,
            shares_mint=body.shares_mint,
            farm_accounts=body.farm_accounts,
            farm_params=body.farm_params.model_dump(),
        )
        return to_json_safe(out)
    except Exception as exc:
        raise to_http_error(exc, "initialize chamber") from exc
