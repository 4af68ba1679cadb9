from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from core.domain.entities.chamber_entity import (
    ChamberConfig,
    ChamberEntity,
    ChamberStrategy,
    ChamberVault,
    FarmCallParams,
)
from core.domain.enums.chamber_enums import ChamberMarket
from core.services.authority import VaultAuthority, derive_chamber_address
from core.services.layout import pack_chamber
from core.services.normalize import _require_address
from core.use_cases.chamber_base_usecase import ChamberUseCaseBase

logger = logging.getLogger(__name__)

MIN_LEVERAGE = 2
MAX_MINT_DECIMALS = 19


def _decimal_scale(name: str, mint_decimals: int) -> int:
    if isinstance(mint_decimals, bool) or not isinstance(mint_decimals, int):
        raise ValueError(f"{name} must be an integer")
    if mint_decimals < 0 or mint_decimals > MAX_MINT_DECIMALS:
        raise ValueError(f"{name} must be between 0 and {MAX_MINT_DECIMALS}")
    return 10**mint_decimals


@dataclass
class ChamberAdminUseCase(ChamberUseCaseBase):
    """
    Creates chambers: derives their addresses, registers the position with the
    leveraged farm under the chamber authority and persists the record.
    """

    def initialize(
        self,
        *,
        farm: str,
        farm_program: str,
        leverage: int,
        is_base_volatile: bool,
        nonce: int,
        authority_bump: int,
        base: str,
        quote: str,
        base_mint: str,
        quote_mint: str,
        base_oracle: str,
        quote_oracle: str,
        base_decimals: int,
        quote_decimals: int,
        owner: str,
        fee_manager: str,
        shares_mint: str,
        market: ChamberMarket = ChamberMarket.TULIP,
        farm_accounts: Optional[Mapping[str, str]] = None,
        farm_params: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        if isinstance(leverage, bool) or not isinstance(leverage, int) or leverage < MIN_LEVERAGE:
            raise ValueError(f"leverage must be an integer >= {MIN_LEVERAGE}")

        address = derive_chamber_address(
            farm=farm,
            base_mint=base_mint,
            quote_mint=quote_mint,
            nonce=nonce,
            program_id=self.program_id,
        )
        if self.chambers.get_by_address(address) is not None:
            raise ValueError(f"Chamber {address} already exists")

        authority = VaultAuthority.derive(chamber=address, bump=authority_bump, program_id=self.program_id)

        chamber = ChamberEntity(
            address=address,
            strategy=ChamberStrategy(
                market=market,
                farm=_require_address("farm", farm),
                farm_program=_require_address("farm_program", farm_program),
                leverage=leverage,
                is_base_volatile=bool(is_base_volatile),
            ),
            vault=ChamberVault(
                base=_require_address("base", base),
                quote=_require_address("quote", quote),
                base_mint=_require_address("base_mint", base_mint),
                quote_mint=_require_address("quote_mint", quote_mint),
                base_oracle=_require_address("base_oracle", base_oracle),
                quote_oracle=_require_address("quote_oracle", quote_oracle),
                base_decimals=_decimal_scale("base_decimals", base_decimals),
                quote_decimals=_decimal_scale("quote_decimals", quote_decimals),
            ),
            config=ChamberConfig(
                authority=authority.address,
                authority_bump=authority_bump,
                owner=_require_address("owner", owner),
                fee_manager=_require_address("fee_manager", fee_manager),
                shares_mint=_require_address("shares_mint", shares_mint),
                nonce=nonce,
            ),
            farm_accounts=dict(farm_accounts or {}),
            farm_params=FarmCallParams(**dict(farm_params or {})),
        )

        orch = self._orchestrator(chamber)
        plan = orch.prepare(orch.initialize_steps())

        with self._request() as session:
            self.chambers.insert(chamber, session=session)
            results = orch.execute(plan)

        logger.info(
            "chamber initialized address=%s farm=%s leverage=%s authority=%s",
            chamber.address, chamber.strategy.farm, leverage, authority.address,
        )
        return {
            "chamber": chamber.address,
            "authority": authority.address,
            "record": "0x" + pack_chamber(chamber).hex(),
            "txs": results,
        }
