from __future__ import annotations

from typing import Any, Dict, Optional


class ChamberError(Exception):
    """
    Base class for every chamber domain error.

    Each subclass carries a stable `code` so the HTTP layer and the persisted
    exec history can refer to the failure kind without parsing messages.
    """

    code: str = "ChamberError"
    msg: str = "Chamber error"

    def __init__(self, msg: Optional[str] = None) -> None:
        self.detail = msg or self.msg
        super().__init__(self.detail)

    def as_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.detail}


class CpiInstructionFormationFailed(ChamberError):
    code = "CpiInstructionFormationFailed"
    msg = "CPI instruction formation is failed"


class InvalidUserAccountStatus(ChamberError):
    code = "InvalidUserAccountStatus"
    msg = "Invalid user account status"


class InsufficientFunds(ChamberError):
    code = "InsufficientFunds"
    msg = "Insufficient funds"


class MathOverflow(ChamberError):
    code = "MathOverflow"
    msg = "Math overflow"


class InvalidOracleData(ChamberError):
    code = "InvalidOracleData"
    msg = "Oracle price account is malformed"


class StaleOraclePrice(ChamberError):
    code = "StaleOraclePrice"
    msg = "Oracle price is stale or not trading"


class InvalidChamberAuthority(ChamberError):
    code = "InvalidChamberAuthority"
    msg = "Signer does not match the chamber authority"


class ChamberNotFound(ChamberError):
    code = "ChamberNotFound"
    msg = "Chamber not found"


class UserAccountNotFound(ChamberError):
    code = "UserAccountNotFound"
    msg = "User account not found"


class UserAccountAlreadyExists(ChamberError):
    code = "UserAccountAlreadyExists"
    msg = "User account already exists"


class InvalidTokenAccount(ChamberError):
    code = "InvalidTokenAccount"
    msg = "Token account has the wrong owner or mint"


class StaleRecord(ChamberError):
    code = "StaleRecord"
    msg = "Record changed since it was loaded"


class TransactionRevertedError(Exception):
    """
    Raised after a transaction was mined with status == 0.
    """

    def __init__(
        self,
        *,
        tx_hash: str,
        receipt: Optional[Dict[str, Any]] = None,
        msg: str = "Transaction reverted",
    ) -> None:
        self.tx_hash = tx_hash
        self.receipt = receipt or {}
        super().__init__(f"{msg} (tx={tx_hash})")


class TransactionBudgetExceededError(Exception):
    """
    Raised BEFORE broadcasting, when the estimated gas cost is above the caller budget.
    """

    def __init__(
        self,
        *,
        est_gas_limit: int,
        gas_price_wei: int,
        eth_usd: float,
        usd_estimated: float,
        usd_budget: float,
    ) -> None:
        self.est_gas_limit = est_gas_limit
        self.gas_price_wei = gas_price_wei
        self.eth_usd = eth_usd
        self.usd_estimated = usd_estimated
        self.usd_budget = usd_budget
        super().__init__(
            f"Gas budget exceeded: estimated ${usd_estimated:.4f} > budget ${usd_budget:.4f}"
        )
