from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

from eth_account import Account
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import ContractLogicError

from config import get_settings
from core.domain.enums.tx_enums import GasStrategy
from core.services.exceptions import TransactionBudgetExceededError, TransactionRevertedError
from core.services.utils import to_json_safe

FALLBACK_GAS_LIMIT = 300_000


@dataclass
class _BudgetBlock:
    max_gas_usd: Optional[float]
    eth_usd_hint: Optional[float]
    usd_estimated_upper_bound: Optional[float]
    budget_exceeded: bool

    def as_dict(self) -> dict:
        return {
            "max_gas_usd": self.max_gas_usd,
            "eth_usd_hint": self.eth_usd_hint,
            "usd_estimated_upper_bound": self.usd_estimated_upper_bound,
            "budget_exceeded": self.budget_exceeded,
        }


class TxService:
    """
    Transaction sender for chamber calls.

    Signs with the service key, pads the gas estimate per GasStrategy,
    optionally enforces a USD gas budget and, when waiting, turns a mined
    status == 0 into TransactionRevertedError.
    """

    def __init__(self, rpc_url: str | None = None):
        s = get_settings()
        self.w3 = Web3(Web3.HTTPProvider(rpc_url or s.RPC_URL_DEFAULT))
        self.pk = s.PRIVATE_KEY
        self.account = Account.from_key(self.pk)

    def sender_address(self) -> str:
        return self.account.address

    # ---------- internal helpers ----------

    def _next_nonce(self) -> int:
        return self.w3.eth.get_transaction_count(self.account.address, "pending")

    def _estimate_with_strategy(self, tx: dict, strategy: GasStrategy) -> int:
        try:
            base_estimate = int(self.w3.eth.estimate_gas(tx))
        except Exception:
            base_estimate = FALLBACK_GAS_LIMIT

        if strategy == GasStrategy.BUFFERED:
            return int(base_estimate * 1.25) + 10_000
        if strategy == GasStrategy.AGGRESSIVE:
            return int(base_estimate * 1.5) + 25_000
        return base_estimate

    def _finalize_fee_fields(self, tx: dict) -> dict:
        if "maxFeePerGas" in tx or "maxPriorityFeePerGas" in tx:
            return tx
        if "gasPrice" not in tx:
            tx["gasPrice"] = self.w3.eth.gas_price
        return tx

    def _budget_check(
        self,
        *,
        gas_limit: int,
        gas_price_wei: int,
        max_gas_usd: Optional[float],
        eth_usd_hint: Optional[float],
    ) -> _BudgetBlock:
        budget = _BudgetBlock(
            max_gas_usd=max_gas_usd,
            eth_usd_hint=eth_usd_hint,
            usd_estimated_upper_bound=None,
            budget_exceeded=False,
        )
        if max_gas_usd is None:
            return budget

        if eth_usd_hint is None or eth_usd_hint <= 0:
            raise TransactionBudgetExceededError(
                est_gas_limit=int(gas_limit),
                gas_price_wei=int(gas_price_wei),
                eth_usd=0.0,
                usd_estimated=0.0,
                usd_budget=float(max_gas_usd),
            )

        gas_cost_eth = (Decimal(gas_limit) * Decimal(gas_price_wei)) / Decimal(10**18)
        gas_cost_usd = float(gas_cost_eth * Decimal(eth_usd_hint))
        budget.usd_estimated_upper_bound = gas_cost_usd

        if gas_cost_usd > float(max_gas_usd):
            budget.budget_exceeded = True
            raise TransactionBudgetExceededError(
                est_gas_limit=int(gas_limit),
                gas_price_wei=int(gas_price_wei),
                eth_usd=float(eth_usd_hint),
                usd_estimated=float(gas_cost_usd),
                usd_budget=float(max_gas_usd),
            )
        return budget

    def _response(
        self,
        *,
        tx_hash: str,
        status: Optional[int],
        receipt: Optional[dict],
        gas_limit: int,
        gas_price_wei: int,
        budget: _BudgetBlock,
    ) -> dict:
        gas_used = int((receipt or {}).get("gasUsed") or 0)
        return to_json_safe(
            {
                "tx_hash": tx_hash,
                "broadcasted": True,
                "status": status,
                "receipt": receipt,
                "gas": {
                    "limit": int(gas_limit),
                    "used": gas_used,
                    "price_wei": int(gas_price_wei),
                },
                "budget": budget.as_dict(),
                "ts": datetime.now(UTC).isoformat(),
            }
        )

    def _dispatch(
        self,
        tx: dict,
        *,
        wait: bool,
        gas_limit: Optional[int],
        gas_strategy: GasStrategy,
        max_gas_usd: Optional[float],
        eth_usd_hint: Optional[float],
    ) -> dict:
        tx["gas"] = int(gas_limit) if gas_limit is not None else self._estimate_with_strategy(tx, gas_strategy)
        tx = self._finalize_fee_fields(tx)
        gas_price_wei = int(tx.get("gasPrice", 0))

        budget = self._budget_check(
            gas_limit=tx["gas"],
            gas_price_wei=gas_price_wei,
            max_gas_usd=max_gas_usd,
            eth_usd_hint=eth_usd_hint,
        )

        signed = self.w3.eth.account.sign_transaction(tx, self.pk)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction).hex()

        if not wait:
            return self._response(
                tx_hash=tx_hash, status=None, receipt=None,
                gas_limit=tx["gas"], gas_price_wei=gas_price_wei, budget=budget,
            )

        rcpt = dict(self.w3.eth.wait_for_transaction_receipt(tx_hash))
        status = int(rcpt.get("status", 0))
        if status == 0:
            raise TransactionRevertedError(
                tx_hash=tx_hash,
                receipt=to_json_safe(rcpt),
                msg="Transaction reverted (status=0)",
            )

        return self._response(
            tx_hash=tx_hash, status=status, receipt=rcpt,
            gas_limit=tx["gas"], gas_price_wei=gas_price_wei, budget=budget,
        )

    # ---------- public API ----------

    def send(
        self,
        fn: ContractFunction,
        *,
        wait: bool = True,
        gas_limit: Optional[int] = None,
        gas_strategy: GasStrategy = GasStrategy.BUFFERED,
        max_gas_usd: Optional[float] = None,
        eth_usd_hint: Optional[float] = None,
    ) -> dict:
        """
        Broadcast an already-parameterized contract call.

        Raises:
            TransactionBudgetExceededError: before sending, estimated gas cost above `max_gas_usd`.
            TransactionRevertedError: after mining, receipt status == 0 (only when `wait`).
        """
        tx = fn.build_transaction({"from": self.account.address, "nonce": self._next_nonce(), "value": 0})
        return self._dispatch(
            tx, wait=wait, gas_limit=gas_limit, gas_strategy=gas_strategy,
            max_gas_usd=max_gas_usd, eth_usd_hint=eth_usd_hint,
        )

    def send_data(
        self,
        *,
        to: str,
        data: bytes,
        wait: bool = True,
        gas_limit: Optional[int] = None,
        gas_strategy: GasStrategy = GasStrategy.BUFFERED,
        max_gas_usd: Optional[float] = None,
        eth_usd_hint: Optional[float] = None,
    ) -> dict:
        """
        Broadcast raw call data to `to`; used for encoded farm instructions.
        """
        tx = {
            "from": self.account.address,
            "to": Web3.to_checksum_address(to),
            "data": Web3.to_hex(data),
            "value": 0,
            "nonce": self._next_nonce(),
            "chainId": self.w3.eth.chain_id,
        }
        return self._dispatch(
            tx, wait=wait, gas_limit=gas_limit, gas_strategy=gas_strategy,
            max_gas_usd=max_gas_usd, eth_usd_hint=eth_usd_hint,
        )

    def call_data(self, *, to: str, data: bytes) -> bytes:
        """
        Read-only `eth_call` of raw call data from the service account.

        A revert in the simulated call surfaces as TransactionRevertedError
        with an empty tx hash.
        """
        try:
            out = self.w3.eth.call(
                {
                    "from": self.account.address,
                    "to": Web3.to_checksum_address(to),
                    "data": Web3.to_hex(data),
                }
            )
        except ContractLogicError as exc:
            raise TransactionRevertedError(tx_hash="", msg=f"Call reverted: {exc}") from exc
        return bytes(out)
