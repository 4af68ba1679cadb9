from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from core.domain.enums.external_op_enums import ExternalOp
from core.services.exceptions import InsufficientFunds, InvalidUserAccountStatus
from core.services.fixed_point import require_u64
from core.use_cases.chamber_base_usecase import ChamberUseCaseBase

logger = logging.getLogger(__name__)

REOPEN_OPS = (
    ExternalOp.DEPOSIT_BORROW_DUAL,
    ExternalOp.SWAP_TOKENS,
    ExternalOp.ADD_LIQUIDITY,
    ExternalOp.STAKE_LP,
)


@dataclass
class ChamberRebalanceUseCase(ChamberUseCaseBase):
    """
    Unwind the whole farm position and reopen it at the current prices.

    Callable by any authenticated caller; leaves the accumulators as they
    are. Refused while a deposit is parked between stages, since the full
    unwind would repay the obligation holding that deposit.
    """

    def rebalance(self, *, chamber: str, farm_accounts: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        in_flight = self.users.list_in_flight(ch.address)
        if in_flight:
            users = ", ".join(f"{a.user} ({a.status})" for a in in_flight)
            raise InvalidUserAccountStatus(f"Deposits in flight in chamber {ch.address}: {users}")

        orch = self._orchestrator(ch, farm_accounts)
        unwind = orch.prepare(orch.unwind_steps())
        orch.require_accounts(REOPEN_OPS)

        tokens = self.host.tokens
        with self._request() as session:
            # stages write the chamber record too, so one that starts now conflicts
            self.chambers.save(ch, session=session)
            unwind_txs = orch.execute(unwind)

            # split is re-derived from what the unwind actually returned
            base_amount = require_u64(tokens.balance_of(ch.vault.base))
            quote_amount = require_u64(tokens.balance_of(ch.vault.quote))
            if base_amount == 0 and quote_amount == 0:
                raise InsufficientFunds("Nothing to redeploy after unwind")

            prices = self._prices(ch)
            value = self._deposit_value(ch, base_amount, quote_amount, prices)
            base_borrow, quote_borrow = self._borrow_split(ch, value, prices)

            reopen = orch.prepare(
                orch.deposit_steps(
                    base_amount=base_amount,
                    quote_amount=quote_amount,
                    base_borrow=base_borrow,
                    quote_borrow=quote_borrow,
                )
            )
            reopen_txs = orch.execute(reopen)

        logger.info(
            "rebalance chamber=%s redeployed=(%s, %s) borrow=(%s, %s) value=%s",
            ch.address, base_amount, quote_amount, base_borrow, quote_borrow, value,
        )
        return {
            "chamber": ch.address,
            "base_amount": base_amount,
            "quote_amount": quote_amount,
            "base_borrow": base_borrow,
            "quote_borrow": quote_borrow,
            "value": str(value),
            "txs": unwind_txs + reopen_txs,
        }
