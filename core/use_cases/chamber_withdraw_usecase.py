from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from core.domain.entities.chamber_entity import ChamberEntity
from core.domain.entities.user_account_entity import UserAccountEntity
from core.domain.enums.chamber_enums import UserAccountStatus
from core.services.exceptions import InsufficientFunds
from core.services.fixed_point import require_u64, try_ceil_u64, try_div, try_mul
from core.services.orchestrator import FULL_UNWIND_PERCENT
from core.services.shares import pro_rata_amount, shares_to_burn, value_for_shares
from core.use_cases.chamber_base_usecase import ChamberUseCaseBase

logger = logging.getLogger(__name__)


def unwind_percent(requested_value: Decimal, pooled_value: Decimal) -> int:
    """
    Share of the farm position to unstake for a withdrawal, in whole percent,
    rounded up so the unwind always covers the request.
    """
    if pooled_value == 0:
        raise InsufficientFunds("Chamber holds no redeemable value")
    pct = try_ceil_u64(try_div(try_mul(requested_value, 100), pooled_value))
    return max(1, min(FULL_UNWIND_PERCENT, pct))


@dataclass
class ChamberWithdrawUseCase(ChamberUseCaseBase):
    """
    Withdrawal is the unwind half of the chamber cycle, sized by the value
    the user asks for and paid for in shares.
    """

    def quote_withdrawal(self, *, chamber: str, shares: int) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        require_u64(shares)
        supply = self.host.tokens.supply(ch.config.shares_mint)
        base_amount, quote_amount = self._pro_rata(ch, shares, supply)
        value = value_for_shares(shares, supply, self._pooled_value(ch, self._prices(ch)))
        return {
            "chamber": ch.address,
            "shares": shares,
            "shares_supply": supply,
            "base_amount": base_amount,
            "quote_amount": quote_amount,
            "value": str(value),
        }

    def withdraw(
        self,
        *,
        chamber: str,
        user: str,
        base_amount: int,
        quote_amount: int,
        user_base: str,
        user_quote: str,
        farm_accounts: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        account = self._load_user_account(ch, user)
        account.assert_status(UserAccountStatus.READY)
        require_u64(base_amount)
        require_u64(quote_amount)
        if base_amount == 0 and quote_amount == 0:
            raise InsufficientFunds("Withdrawal amounts are both zero")

        prices = self._prices(ch)
        pooled = self._pooled_value(ch, prices)
        requested = self._deposit_value(ch, base_amount, quote_amount, prices)
        supply = self.host.tokens.supply(ch.config.shares_mint)
        burn = shares_to_burn(requested, supply, pooled)

        return self._withdraw(
            ch, account,
            amounts=(base_amount, quote_amount),
            burn=burn,
            percent=unwind_percent(requested, pooled),
            user_tokens=(user_base, user_quote),
            farm_accounts=farm_accounts,
        )

    def withdraw_shares(
        self,
        *,
        chamber: str,
        user: str,
        shares: int,
        user_base: str,
        user_quote: str,
        farm_accounts: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Redeem exactly `shares` for their floored pro-rata part of the pool.
        """
        ch = self._load_chamber(chamber)
        account = self._load_user_account(ch, user)
        account.assert_status(UserAccountStatus.READY)
        require_u64(shares)
        if shares == 0:
            raise InsufficientFunds("Nothing to redeem")

        prices = self._prices(ch)
        pooled = self._pooled_value(ch, prices)
        supply = self.host.tokens.supply(ch.config.shares_mint)
        base_amount, quote_amount = self._pro_rata(ch, shares, supply)
        if base_amount == 0 and quote_amount == 0:
            raise InsufficientFunds(f"{shares} shares redeem nothing")
        requested = self._deposit_value(ch, base_amount, quote_amount, prices)

        return self._withdraw(
            ch, account,
            amounts=(base_amount, quote_amount),
            burn=shares,
            percent=unwind_percent(requested, pooled),
            user_tokens=(user_base, user_quote),
            farm_accounts=farm_accounts,
        )

    # ---------- internals ----------

    @staticmethod
    def _pro_rata(chamber: ChamberEntity, shares: int, supply: int) -> Tuple[int, int]:
        if shares > supply:
            raise InsufficientFunds(f"Cannot redeem {shares} shares out of a supply of {supply}")
        return (
            pro_rata_amount(chamber.vault.base_amount, shares, supply),
            pro_rata_amount(chamber.vault.quote_amount, shares, supply),
        )

    def _withdraw(
        self,
        ch: ChamberEntity,
        account: UserAccountEntity,
        *,
        amounts: Tuple[int, int],
        burn: int,
        percent: int,
        user_tokens: Tuple[str, str],
        farm_accounts: Optional[Mapping[str, str]],
    ) -> Dict[str, Any]:
        base_amount, quote_amount = amounts
        user_base, user_quote = self._user_token_accounts(ch, account, *user_tokens)

        held = self.host.tokens.balance_of(account.shares)
        if burn > held:
            raise InsufficientFunds(f"Withdrawal needs {burn} shares, user holds {held}")
        if base_amount > ch.vault.base_amount or quote_amount > ch.vault.quote_amount:
            raise InsufficientFunds("Withdrawal exceeds the chamber's pooled amounts")

        orch = self._orchestrator(ch, farm_accounts)
        plan = orch.prepare(orch.unwind_steps(percent))
        ch.vault.withdraw(base_amount, quote_amount)

        tokens = self.host.tokens
        with self._request() as session:
            self.chambers.save(ch, session=session)
            # touched so a concurrent stage on this account conflicts
            self.users.save(account, expected_status=UserAccountStatus.READY, session=session)
            txs = orch.execute(plan)
            tokens.burn(mint=ch.config.shares_mint, source=account.shares, amount=burn, owner=account.user)
            if base_amount:
                tokens.transfer(source=ch.vault.base, destination=user_base, amount=base_amount, authority=orch.signer.address)
            if quote_amount:
                tokens.transfer(source=ch.vault.quote, destination=user_quote, amount=quote_amount, authority=orch.signer.address)

        logger.info(
            "withdraw chamber=%s user=%s base=%s quote=%s burned=%s unwind_pct=%s",
            ch.address, account.user, base_amount, quote_amount, burn, percent,
        )
        return {
            "chamber": ch.address,
            "user": account.user,
            "base_amount": base_amount,
            "quote_amount": quote_amount,
            "shares_burned": burn,
            "withdraw_percent": percent,
            "txs": txs,
        }
