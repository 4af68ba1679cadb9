from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from core.domain.entities.chamber_entity import ChamberEntity
from core.domain.entities.user_account_entity import UserAccountEntity
from core.domain.enums.chamber_enums import UserAccountStatus
from core.services.exceptions import InsufficientFunds
from core.services.fixed_point import require_u64
from core.services.shares import shares_for_value
from core.use_cases.chamber_base_usecase import ChamberUseCaseBase

logger = logging.getLogger(__name__)


@dataclass
class _DepositQuote:
    base_amount: int
    quote_amount: int
    value: Decimal
    base_borrow: int
    quote_borrow: int
    shares: int


@dataclass
class ChamberDepositUseCase(ChamberUseCaseBase):
    """
    The deposit protocol.

    A full deposit is begin -> process -> end, each a separate request that
    either completes or leaves the user account as it found it. `deposit`
    runs the same calls in one request; `cancel_deposit` unwinds a deposit
    parked between stages.
    """

    # ---------- helpers ----------

    def _quote_deposit(self, chamber: ChamberEntity, base_amount: int, quote_amount: int) -> _DepositQuote:
        require_u64(base_amount)
        require_u64(quote_amount)
        if base_amount == 0 and quote_amount == 0:
            raise InsufficientFunds("Deposit amounts are both zero")

        prices = self._prices(chamber)
        value = self._deposit_value(chamber, base_amount, quote_amount, prices)
        base_borrow, quote_borrow = self._borrow_split(chamber, value, prices)

        # share rate is taken against the pool as it stands before this deposit
        supply = self.host.tokens.supply(chamber.config.shares_mint)
        shares = shares_for_value(value, supply, self._pooled_value(chamber, prices))
        if shares == 0:
            raise InsufficientFunds("Deposit is too small to issue any shares")

        return _DepositQuote(
            base_amount=base_amount,
            quote_amount=quote_amount,
            value=value,
            base_borrow=base_borrow,
            quote_borrow=quote_borrow,
            shares=shares,
        )

    def _pull_funds(self, chamber: ChamberEntity, account: UserAccountEntity, q: _DepositQuote, user_tokens: Tuple[str, str]) -> None:
        tokens = self.host.tokens
        if q.base_amount:
            tokens.transfer(source=user_tokens[0], destination=chamber.vault.base, amount=q.base_amount, authority=account.user)
        if q.quote_amount:
            tokens.transfer(source=user_tokens[1], destination=chamber.vault.quote, amount=q.quote_amount, authority=account.user)

    # ---------- stages ----------

    def begin_deposit(
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
        user_tokens = self._user_token_accounts(ch, account, user_base, user_quote)

        q = self._quote_deposit(ch, base_amount, quote_amount)
        orch = self._orchestrator(ch, farm_accounts)
        plan = orch.prepare(
            orch.open_position_steps(
                base_amount=q.base_amount,
                quote_amount=q.quote_amount,
                base_borrow=q.base_borrow,
                quote_borrow=q.quote_borrow,
            )
        )
        account.begin_deposit(base_amount=q.base_amount, quote_amount=q.quote_amount, shares_amount=q.shares)

        with self._request() as session:
            self.chambers.save(ch, session=session)
            self.users.save(account, expected_status=UserAccountStatus.READY, session=session)
            self._pull_funds(ch, account, q, user_tokens)
            txs = orch.execute(plan)

        logger.info(
            "begin_deposit chamber=%s user=%s base=%s quote=%s borrow=(%s, %s) locked_shares=%s",
            ch.address, account.user, q.base_amount, q.quote_amount, q.base_borrow, q.quote_borrow, q.shares,
        )
        return self._result(account, txs, value=q.value, borrow=(q.base_borrow, q.quote_borrow))

    def process_deposit(
        self,
        *,
        chamber: str,
        user: str,
        farm_accounts: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        account = self._load_user_account(ch, user)
        account.assert_status(UserAccountStatus.BEGIN_DEPOSIT)

        orch = self._orchestrator(ch, farm_accounts)
        plan = orch.prepare(orch.form_lp_steps())
        account.process_deposit()

        with self._request() as session:
            self.chambers.save(ch, session=session)
            self.users.save(account, expected_status=UserAccountStatus.BEGIN_DEPOSIT, session=session)
            txs = orch.execute(plan)

        logger.info("process_deposit chamber=%s user=%s", ch.address, account.user)
        return self._result(account, txs)

    def end_deposit(
        self,
        *,
        chamber: str,
        user: str,
        farm_accounts: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        account = self._load_user_account(ch, user)
        account.assert_status(UserAccountStatus.PROCESS_DEPOSIT)

        orch = self._orchestrator(ch, farm_accounts)
        plan = orch.prepare(orch.stake_steps())

        base_amount = account.locked_base_amount
        quote_amount = account.locked_quote_amount
        shares = account.locked_shares_amount
        ch.vault.deposit(base_amount, quote_amount)
        account.end_deposit()

        with self._request() as session:
            self.chambers.save(ch, session=session)
            self.users.save(account, expected_status=UserAccountStatus.PROCESS_DEPOSIT, session=session)
            txs = orch.execute(plan)
            self.host.tokens.mint_to(
                mint=ch.config.shares_mint,
                destination=account.shares,
                amount=shares,
                authority=orch.signer.address,
            )

        logger.info(
            "end_deposit chamber=%s user=%s base=%s quote=%s shares=%s",
            ch.address, account.user, base_amount, quote_amount, shares,
        )
        return self._result(account, txs, minted=shares)

    def deposit(
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
        """
        Single-request deposit: same calls and same final ledger state as
        begin + process + end, without passing through the in-flight states.
        """
        ch = self._load_chamber(chamber)
        account = self._load_user_account(ch, user)
        account.assert_status(UserAccountStatus.READY)
        user_tokens = self._user_token_accounts(ch, account, user_base, user_quote)

        q = self._quote_deposit(ch, base_amount, quote_amount)
        orch = self._orchestrator(ch, farm_accounts)
        plan = orch.prepare(
            orch.deposit_steps(
                base_amount=q.base_amount,
                quote_amount=q.quote_amount,
                base_borrow=q.base_borrow,
                quote_borrow=q.quote_borrow,
            )
        )
        ch.vault.deposit(q.base_amount, q.quote_amount)

        with self._request() as session:
            self.chambers.save(ch, session=session)
            # a concurrent stage on this account conflicts here
            self.users.save(account, expected_status=UserAccountStatus.READY, session=session)
            self._pull_funds(ch, account, q, user_tokens)
            txs = orch.execute(plan)
            self.host.tokens.mint_to(
                mint=ch.config.shares_mint,
                destination=account.shares,
                amount=q.shares,
                authority=orch.signer.address,
            )

        logger.info(
            "deposit chamber=%s user=%s base=%s quote=%s borrow=(%s, %s) shares=%s",
            ch.address, account.user, q.base_amount, q.quote_amount, q.base_borrow, q.quote_borrow, q.shares,
        )
        return self._result(account, txs, value=q.value, borrow=(q.base_borrow, q.quote_borrow), minted=q.shares)

    def cancel_deposit(
        self,
        *,
        chamber: str,
        user: str,
        user_base: str,
        user_quote: str,
        farm_accounts: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Unwind a deposit parked in BeginDeposit or ProcessDeposit and hand
        the locked amounts back. No shares are minted and the accumulators
        are left alone.
        """
        ch = self._load_chamber(chamber)
        account = self._load_user_account(ch, user)
        account.assert_status(UserAccountStatus.BEGIN_DEPOSIT, UserAccountStatus.PROCESS_DEPOSIT)
        user_tokens = self._user_token_accounts(ch, account, user_base, user_quote)

        orch = self._orchestrator(ch, farm_accounts)
        plan = orch.prepare(orch.cancel_steps(account.status))

        base_amount = account.locked_base_amount
        quote_amount = account.locked_quote_amount
        from_status = account.status
        account.cancel_deposit()

        tokens = self.host.tokens
        with self._request() as session:
            self.chambers.save(ch, session=session)
            self.users.save(account, expected_status=from_status, session=session)
            txs = orch.execute(plan)
            if base_amount:
                tokens.transfer(source=ch.vault.base, destination=user_tokens[0], amount=base_amount, authority=orch.signer.address)
            if quote_amount:
                tokens.transfer(source=ch.vault.quote, destination=user_tokens[1], amount=quote_amount, authority=orch.signer.address)

        logger.info(
            "cancel_deposit chamber=%s user=%s from=%s returned=(%s, %s)",
            ch.address, account.user, from_status, base_amount, quote_amount,
        )
        return self._result(account, txs, returned=(base_amount, quote_amount))

    @staticmethod
    def _result(account: UserAccountEntity, txs, **extra: Any) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "chamber": account.chamber,
            "user": account.user,
            "status": account.status,
            "locked_base_amount": account.locked_base_amount,
            "locked_quote_amount": account.locked_quote_amount,
            "locked_shares_amount": account.locked_shares_amount,
            "txs": txs,
        }
        for k, v in extra.items():
            out[k] = str(v) if isinstance(v, Decimal) else v
        return out
