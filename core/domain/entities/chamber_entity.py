from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.domain.entities.base_entity import MongoEntity
from core.domain.enums.chamber_enums import ChamberMarket
from core.services.fixed_point import checked_add_u128, checked_sub_u128


def _lower(v: str) -> str:
    return (v or "").strip().lower()


class ChamberStrategy(BaseModel):
    market: ChamberMarket = ChamberMarket.TULIP
    farm: str
    farm_program: str
    leverage: int = Field(ge=0)
    is_base_volatile: bool

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("farm", "farm_program")
    @classmethod
    def _norm_addr(cls, v: str) -> str:
        return _lower(v)


class ChamberVault(BaseModel):
    """
    Pooled holdings of the chamber.

    `base_decimals` / `quote_decimals` are decimal scales (10**mint_decimals).
    `base_amount` / `quote_amount` are u128 accumulators of net deposits;
    they only move through `deposit` and `withdraw`.
    """

    base: str
    quote: str
    base_mint: str
    quote_mint: str
    base_oracle: str
    quote_oracle: str
    base_decimals: int = Field(gt=0)
    quote_decimals: int = Field(gt=0)
    base_amount: int = 0
    quote_amount: int = 0

    @field_validator("base", "quote", "base_mint", "quote_mint", "base_oracle", "quote_oracle")
    @classmethod
    def _norm_addr(cls, v: str) -> str:
        return _lower(v)

    def deposit(self, base_amount: int, quote_amount: int) -> None:
        base_total = checked_add_u128(self.base_amount, base_amount)
        quote_total = checked_add_u128(self.quote_amount, quote_amount)
        self.base_amount, self.quote_amount = base_total, quote_total

    def withdraw(self, base_amount: int, quote_amount: int) -> None:
        base_total = checked_sub_u128(self.base_amount, base_amount)
        quote_total = checked_sub_u128(self.quote_amount, quote_amount)
        self.base_amount, self.quote_amount = base_total, quote_total


class ChamberConfig(BaseModel):
    authority: str
    authority_bump: int = Field(ge=0, le=255)
    owner: str
    fee_manager: str
    shares_mint: str
    nonce: int = Field(ge=0, le=255)

    @field_validator("authority", "owner", "fee_manager", "shares_mint")
    @classmethod
    def _norm_addr(cls, v: str) -> str:
        return _lower(v)


class FarmCallParams(BaseModel):
    """
    Position coordinates inside the leveraged farm, passed as call arguments.
    """

    obligation_index: int = Field(default=0, ge=0, le=255)
    vault_nonce: int = Field(default=0, ge=0, le=255)
    vault_meta_nonce: int = Field(default=0, ge=0, le=255)
    obligation_vault_nonce: int = Field(default=0, ge=0, le=255)
    close_method: int = Field(default=0, ge=0, le=255)
    reserves: List[str] = Field(default_factory=list)

    @field_validator("reserves")
    @classmethod
    def _norm_reserves(cls, v: List[str]) -> List[str]:
        return [_lower(x) for x in v]


class ChamberEntity(MongoEntity):
    """
    Mongo document (collection: chambers).

    Vault record of one strategy instance, keyed by its derived `address`.
    `farm_accounts` maps farm interface roles to the addresses this chamber's
    position uses; a request may add to them but never replace the roles the
    chamber owns itself.
    """

    address: str
    strategy: ChamberStrategy
    vault: ChamberVault
    config: ChamberConfig

    farm_accounts: Dict[str, str] = Field(default_factory=dict)
    farm_params: FarmCallParams = Field(default_factory=FarmCallParams)

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    @field_validator("address")
    @classmethod
    def _norm_addr(cls, v: str) -> str:
        return _lower(v)

    @field_validator("farm_accounts")
    @classmethod
    def _norm_farm_accounts(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {str(k): _lower(a) for k, a in v.items()}
