# core/services/orchestrator.py
"""
Builds and issues the chamber's calls into the leveraged farm.

Every call goes through `OPERATION_CATALOG`: the operation is resolved, its
arguments encoded and its account roles filled before anything is sent.
A whole plan is formed up front, so an unresolvable step fails the request
before the first side effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from core.domain.entities.chamber_entity import ChamberEntity
from core.domain.enums.chamber_enums import UserAccountStatus
from core.domain.enums.external_op_enums import ExternalOp
from core.domain.gateways.farm_gateway_interface import FarmGatewayInterface
from core.domain.schemas.instruction_types import AccountMeta, ExternalInstruction, OperationSchema
from core.services.authority import VaultAuthority
from core.services.exceptions import CpiInstructionFormationFailed
from core.services.external_ops import AUTHORITY_ROLE, resolve_operation
from core.services.instruction_codec import encode_args, normalize_address

logger = logging.getLogger(__name__)

Step = Tuple[Union[ExternalOp, str], Mapping[str, Any]]

FULL_UNWIND_PERCENT = 100


@dataclass
class ExternalOrchestrator:
    chamber: ChamberEntity
    signer: VaultAuthority
    farm: FarmGatewayInterface
    extra_accounts: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.signer.require_matches(
            chamber=self.chamber.address,
            authority=self.chamber.config.authority,
        )

    # ---------- account wiring ----------

    def _owned_roles(self) -> Dict[str, str]:
        c = self.chamber
        return {
            AUTHORITY_ROLE: self.signer.address,
            "leveraged_farm": c.strategy.farm,
            "coin_source_token_account": c.vault.base,
            "pc_source_token_account": c.vault.quote,
            "coin_reserve_liquidity_oracle": c.vault.base_oracle,
            "pc_reserve_liquidity_oracle": c.vault.quote_oracle,
        }

    def _role_map(self) -> Dict[str, str]:
        roles: Dict[str, str] = {}
        roles.update(self.chamber.farm_accounts)
        roles.update({str(k): v for k, v in self.extra_accounts.items()})
        # roles the chamber owns cannot be redirected by a request
        roles.update(self._owned_roles())
        return roles

    def _resolve_accounts(self, schema: OperationSchema, roles: Mapping[str, str]) -> Tuple[AccountMeta, ...]:
        missing = [a.name for a in schema.accounts if not roles.get(a.name)]
        if missing:
            raise CpiInstructionFormationFailed(
                f"{schema.op.value}: missing accounts {missing}"
            )
        metas = []
        for spec in schema.accounts:
            try:
                address = normalize_address(roles[spec.name])
            except ValueError as exc:
                raise CpiInstructionFormationFailed(
                    f"{schema.op.value}: bad account '{spec.name}': {exc}"
                ) from exc
            metas.append(AccountMeta(address=address, writable=spec.writable, signer=spec.signer))
        return tuple(metas)

    # ---------- formation ----------

    def build(self, op: Union[ExternalOp, str], args: Optional[Mapping[str, Any]] = None) -> ExternalInstruction:
        schema = resolve_operation(op)
        args = dict(args or {})
        data = encode_args(schema, args)
        accounts = self._resolve_accounts(schema, self._role_map())
        return ExternalInstruction(
            op=schema.op,
            program_id=self.chamber.strategy.farm_program,
            data=data,
            accounts=accounts,
            args=args,
        )

    def prepare(self, steps: Sequence[Step]) -> List[ExternalInstruction]:
        return [self.build(op, args) for op, args in steps]

    def require_accounts(self, ops: Sequence[Union[ExternalOp, str]]) -> None:
        """
        Check that `ops` resolve and have every account they need, without
        encoding arguments that are only known later in the request.
        """
        roles = self._role_map()
        for op in ops:
            self._resolve_accounts(resolve_operation(op), roles)

    # ---------- execution ----------

    def execute(self, instructions: Sequence[ExternalInstruction]) -> List[Dict[str, Any]]:
        results = []
        for ix in instructions:
            logger.debug(
                "chamber=%s op=%s program=%s args=%s",
                self.chamber.address, ix.op.value, ix.program_id, ix.args,
            )
            results.append(self.farm.invoke(ix, self.signer) or {})
        return results

    # ---------- call plans ----------

    @property
    def _obligation(self) -> int:
        return self.chamber.farm_params.obligation_index

    def initialize_steps(self) -> List[Step]:
        return [
            (ExternalOp.CREATE_USER_FARM, {"solfarm_vault_program": self._role_map().get("vault_program", "")}),
            (ExternalOp.CREATE_USER_FARM_OBLIGATION, {}),
        ]

    def open_position_steps(self, *, base_amount: int, quote_amount: int, base_borrow: int, quote_borrow: int) -> List[Step]:
        return [
            (
                ExternalOp.DEPOSIT_BORROW_DUAL,
                {
                    "coin_amount": base_amount,
                    "pc_amount": quote_amount,
                    "coin_borrow_amount": base_borrow,
                    "pc_borrow_amount": quote_borrow,
                    "obligation_index": self._obligation,
                },
            )
        ]

    def form_lp_steps(self) -> List[Step]:
        return [
            (ExternalOp.SWAP_TOKENS, {"obligation_index": self._obligation}),
            (ExternalOp.ADD_LIQUIDITY, {"obligation_index": self._obligation}),
        ]

    def stake_steps(self) -> List[Step]:
        p = self.chamber.farm_params
        return [
            (
                ExternalOp.STAKE_LP,
                {"nonce": p.vault_nonce, "meta_nonce": p.vault_meta_nonce, "obligation_index": p.obligation_index},
            )
        ]

    def deposit_steps(self, **amounts: int) -> List[Step]:
        return self.open_position_steps(**amounts) + self.form_lp_steps() + self.stake_steps()

    def _remove_liquidity_step(self) -> Step:
        p = self.chamber.farm_params
        return (
            ExternalOp.REMOVE_LIQUIDITY,
            {"obligation_index": p.obligation_index, "obligation_vault_nonce": p.obligation_vault_nonce},
        )

    def _repay_steps(self) -> List[Step]:
        p = self.chamber.farm_params
        return [
            (ExternalOp.SWAP_TO_REPAY, {"obligation_index": p.obligation_index}),
            (ExternalOp.REPAY_OBLIGATION, {"reserves": list(p.reserves), "obligation_index": p.obligation_index}),
        ]

    def unwind_steps(self, withdraw_percent: int = FULL_UNWIND_PERCENT) -> List[Step]:
        p = self.chamber.farm_params
        unstake = (
            ExternalOp.UNSTAKE_LP,
            {
                "meta_nonce": p.vault_meta_nonce,
                "nonce": p.vault_nonce,
                "obligation_index": p.obligation_index,
                "withdraw_percent": withdraw_percent,
                "close_method": p.close_method,
            },
        )
        return [unstake, self._remove_liquidity_step()] + self._repay_steps()

    def cancel_steps(self, status: str) -> List[Step]:
        """
        Compensation for a deposit parked in `status`: undo only what the
        completed stages opened.
        """
        if status == UserAccountStatus.PROCESS_DEPOSIT:
            return [self._remove_liquidity_step()] + self._repay_steps()
        return self._repay_steps()
