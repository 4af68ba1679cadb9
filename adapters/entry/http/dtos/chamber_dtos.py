from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from web3 import Web3

from core.domain.enums.chamber_enums import ChamberMarket


def _address(v: str) -> str:
    v = (v or "").strip()
    if not Web3.is_address(v):
        raise ValueError("Invalid address in request (expected 0x...).")
    return v.lower()


def _address_map(v: Dict[str, str]) -> Dict[str, str]:
    return {str(k).strip(): _address(a) for k, a in (v or {}).items()}


class FarmParamsDTO(BaseModel):
    obligation_index: int = Field(default=0, ge=0, le=255)
    vault_nonce: int = Field(default=0, ge=0, le=255)
    vault_meta_nonce: int = Field(default=0, ge=0, le=255)
    obligation_vault_nonce: int = Field(default=0, ge=0, le=255)
    close_method: int = Field(default=0, ge=0, le=255)
    reserves: List[str] = Field(default_factory=list)

    @field_validator("reserves")
    @classmethod
    def _validate_reserves(cls, v: List[str]) -> List[str]:
        return [_address(x) for x in v]


class InitializeChamberRequest(BaseModel):
    """
    Request payload to create a chamber and register its farm position.
    """

    market: ChamberMarket = Field(default=ChamberMarket.TULIP)
    farm: str
    farm_program: str
    leverage: int = Field(..., description="Leverage multiplier, at least 2.")
    is_base_volatile: bool
    nonce: int = Field(default=0, ge=0, le=255)
    authority_bump: int = Field(default=255, ge=0, le=255)

    base: str = Field(..., description="Chamber base holding account.")
    quote: str = Field(..., description="Chamber quote holding account.")
    base_mint: str
    quote_mint: str
    base_oracle: str
    quote_oracle: str
    base_decimals: int = Field(..., ge=0, description="Mint decimals of the base token.")
    quote_decimals: int = Field(..., ge=0, description="Mint decimals of the quote token.")

    owner: Optional[str] = Field(default=None, description="Defaults to the calling admin wallet.")
    fee_manager: str
    shares_mint: str

    farm_accounts: Dict[str, str] = Field(default_factory=dict)
    farm_params: FarmParamsDTO = Field(default_factory=FarmParamsDTO)

    @field_validator(
        "farm", "farm_program", "base", "quote", "base_mint", "quote_mint",
        "base_oracle", "quote_oracle", "fee_manager", "shares_mint",
    )
    @classmethod
    def _validate_addr(cls, v: str) -> str:
        return _address(v)

    @field_validator("owner")
    @classmethod
    def _validate_owner(cls, v: Optional[str]) -> Optional[str]:
        return _address(v) if v else None

    @field_validator("farm_accounts")
    @classmethod
    def _validate_farm_accounts(cls, v: Dict[str, str]) -> Dict[str, str]:
        return _address_map(v)


class CreateUserAccountRequest(BaseModel):
    user: str
    shares: str = Field(..., description="User's share token account.")

    @field_validator("user", "shares")
    @classmethod
    def _validate_addr(cls, v: str) -> str:
        return _address(v)


class _StageRequest(BaseModel):
    user: str
    farm_accounts: Dict[str, str] = Field(default_factory=dict)

    @field_validator("user")
    @classmethod
    def _validate_user(cls, v: str) -> str:
        return _address(v)

    @field_validator("farm_accounts")
    @classmethod
    def _validate_farm_accounts(cls, v: Dict[str, str]) -> Dict[str, str]:
        return _address_map(v)


class DepositStageRequest(_StageRequest):
    """
    Body of the process / end stages.
    """


class UserTokensRequest(_StageRequest):
    user_base: str = Field(..., description="User's base token account.")
    user_quote: str = Field(..., description="User's quote token account.")

    @field_validator("user_base", "user_quote")
    @classmethod
    def _validate_tokens(cls, v: str) -> str:
        return _address(v)


class DepositRequest(UserTokensRequest):
    base_amount: int = Field(default=0, ge=0)
    quote_amount: int = Field(default=0, ge=0)


class CancelDepositRequest(UserTokensRequest):
    pass


class WithdrawRequest(UserTokensRequest):
    """
    Either amounts to withdraw, or `shares` to redeem pro-rata.
    """

    base_amount: int = Field(default=0, ge=0)
    quote_amount: int = Field(default=0, ge=0)
    shares: Optional[int] = Field(default=None, ge=0)


class RebalanceRequest(BaseModel):
    farm_accounts: Dict[str, str] = Field(default_factory=dict)

    @field_validator("farm_accounts")
    @classmethod
    def _validate_farm_accounts(cls, v: Dict[str, str]) -> Dict[str, str]:
        return _address_map(v)
