from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from adapters.entry.http.dtos.chamber_dtos import (
    CancelDepositRequest,
    CreateUserAccountRequest,
    DepositRequest,
    DepositStageRequest,
    RebalanceRequest,
    WithdrawRequest,
)
from adapters.entry.http.views.chamber_errors import to_http_error
from adapters.entry.http.views.user_auth import UserPrincipal, require_user
from core.services.utils import to_json_safe
from core.use_cases.chamber_deposit_usecase import ChamberDepositUseCase
from core.use_cases.chamber_rebalance_usecase import ChamberRebalanceUseCase
from core.use_cases.chamber_withdraw_usecase import ChamberWithdrawUseCase
from core.use_cases.user_account_usecase import UserAccountUseCase

router = APIRouter(prefix="/chambers", tags=["chambers"])


def get_user_account_use_case() -> UserAccountUseCase:
    return UserAccountUseCase.from_settings()


def get_deposit_use_case() -> ChamberDepositUseCase:
    return ChamberDepositUseCase.from_settings()


def get_withdraw_use_case() -> ChamberWithdrawUseCase:
    return ChamberWithdrawUseCase.from_settings()


def get_rebalance_use_case() -> ChamberRebalanceUseCase:
    return ChamberRebalanceUseCase.from_settings()


async def _run(action: str, fn, **kwargs):
    try:
        return to_json_safe(await run_in_threadpool(fn, **kwargs))
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_error(exc, action) from exc


# ---------------- reads ----------------


@router.get("/{chamber}")
async def get_chamber(chamber: str, use_case: UserAccountUseCase = Depends(get_user_account_use_case)):
    return await _run("load chamber", use_case.get_chamber, chamber=chamber)


@router.get("/{chamber}/layout")
async def get_chamber_layout(chamber: str, use_case: UserAccountUseCase = Depends(get_user_account_use_case)):
    """
    Binary record of the chamber, hex encoded.
    """
    return await _run("encode chamber", use_case.get_chamber_layout, chamber=chamber)


@router.get("/{chamber}/users")
async def list_user_accounts(
    chamber: str,
    limit: int = 100,
    use_case: UserAccountUseCase = Depends(get_user_account_use_case),
):
    return await _run("list user accounts", use_case.list_user_accounts, chamber=chamber, limit=limit)


@router.get("/{chamber}/users/{user}")
async def get_user_account(
    chamber: str,
    user: str,
    use_case: UserAccountUseCase = Depends(get_user_account_use_case),
):
    return await _run("load user account", use_case.get_user_account, chamber=chamber, user=user)


@router.get("/{chamber}/withdraw/quote")
async def quote_withdrawal(
    chamber: str,
    shares: int,
    use_case: ChamberWithdrawUseCase = Depends(get_withdraw_use_case),
):
    return await _run("quote withdrawal", use_case.quote_withdrawal, chamber=chamber, shares=shares)


# ---------------- user account ----------------


@router.post("/{chamber}/users")
async def create_user_account(
    chamber: str,
    body: CreateUserAccountRequest,
    use_case: UserAccountUseCase = Depends(get_user_account_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    principal.require_owner(body.user)
    return await _run(
        "create user account", use_case.create_user_account,
        chamber=chamber, user=body.user, shares=body.shares,
    )


# ---------------- deposit protocol ----------------


@router.post("/{chamber}/deposit/begin")
async def begin_deposit(
    chamber: str,
    body: DepositRequest,
    use_case: ChamberDepositUseCase = Depends(get_deposit_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    principal.require_owner(body.user)
    return await _run(
        "begin deposit", use_case.begin_deposit,
        chamber=chamber,
        user=body.user,
        base_amount=body.base_amount,
        quote_amount=body.quote_amount,
        user_base=body.user_base,
        user_quote=body.user_quote,
        farm_accounts=body.farm_accounts,
    )


@router.post("/{chamber}/deposit/process")
async def process_deposit(
    chamber: str,
    body: DepositStageRequest,
    use_case: ChamberDepositUseCase = Depends(get_deposit_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    principal.require_owner(body.user)
    return await _run(
        "process deposit", use_case.process_deposit,
        chamber=chamber, user=body.user, farm_accounts=body.farm_accounts,
    )


@router.post("/{chamber}/deposit/end")
async def end_deposit(
    chamber: str,
    body: DepositStageRequest,
    use_case: ChamberDepositUseCase = Depends(get_deposit_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    principal.require_owner(body.user)
    return await _run(
        "end deposit", use_case.end_deposit,
        chamber=chamber, user=body.user, farm_accounts=body.farm_accounts,
    )


@router.post("/{chamber}/deposit/cancel")
async def cancel_deposit(
    chamber: str,
    body: CancelDepositRequest,
    use_case: ChamberDepositUseCase = Depends(get_deposit_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    principal.require_owner(body.user)
    return await _run(
        "cancel deposit", use_case.cancel_deposit,
        chamber=chamber,
        user=body.user,
        user_base=body.user_base,
        user_quote=body.user_quote,
        farm_accounts=body.farm_accounts,
    )


@router.post("/{chamber}/deposit")
async def deposit(
    chamber: str,
    body: DepositRequest,
    use_case: ChamberDepositUseCase = Depends(get_deposit_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    principal.require_owner(body.user)
    return await _run(
        "deposit", use_case.deposit,
        chamber=chamber,
        user=body.user,
        base_amount=body.base_amount,
        quote_amount=body.quote_amount,
        user_base=body.user_base,
        user_quote=body.user_quote,
        farm_accounts=body.farm_accounts,
    )


# ---------------- withdraw / rebalance ----------------


@router.post("/{chamber}/withdraw")
async def withdraw(
    chamber: str,
    body: WithdrawRequest,
    use_case: ChamberWithdrawUseCase = Depends(get_withdraw_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    principal.require_owner(body.user)
    common = dict(
        chamber=chamber,
        user=body.user,
        user_base=body.user_base,
        user_quote=body.user_quote,
        farm_accounts=body.farm_accounts,
    )
    if body.shares is not None:
        return await _run("withdraw", use_case.withdraw_shares, shares=body.shares, **common)
    return await _run(
        "withdraw", use_case.withdraw,
        base_amount=body.base_amount, quote_amount=body.quote_amount, **common,
    )


@router.post("/{chamber}/rebalance")
async def rebalance(
    chamber: str,
    body: RebalanceRequest = RebalanceRequest(),
    use_case: ChamberRebalanceUseCase = Depends(get_rebalance_use_case),
    principal: UserPrincipal = Depends(require_user),
):
    """
    Unwind the whole position and reopen it at current prices. Any
    authenticated wallet may call it; refused while a deposit is parked.
    """
    return await _run("rebalance", use_case.rebalance, chamber=chamber, farm_accounts=body.farm_accounts)
