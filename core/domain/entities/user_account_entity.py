from __future__ import annotations

from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from core.domain.entities.base_entity import MongoEntity
from core.domain.enums.chamber_enums import UserAccountStatus
from core.services.exceptions import InvalidUserAccountStatus
from core.services.fixed_point import require_u64


class UserAccountEntity(MongoEntity):
    """
    Mongo document (collection: user_accounts).

    Position of one user inside one chamber. The status cycles strictly
    Ready -> BeginDeposit -> ProcessDeposit -> Ready; locked amounts are
    only non-zero while a deposit is in flight.
    """

    address: Optional[str] = None

    chamber: str
    user: str
    shares: str
    status: UserAccountStatus = UserAccountStatus.READY

    locked_base_amount: int = Field(default=0, ge=0)
    locked_quote_amount: int = Field(default=0, ge=0)
    locked_shares_amount: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="allow", use_enum_values=True, validate_assignment=True)

    @field_validator("chamber", "user", "shares")
    @classmethod
    def _norm_addr(cls, v: str) -> str:
        return (v or "").strip().lower()

    def assert_status(self, *expected: UserAccountStatus) -> None:
        if self.status not in {e.value for e in expected}:
            allowed = ", ".join(e.value for e in expected)
            raise InvalidUserAccountStatus(
                f"User account {self.user} is {self.status}, expected {allowed}"
            )

    def begin_deposit(self, *, base_amount: int, quote_amount: int, shares_amount: int) -> None:
        self.assert_status(UserAccountStatus.READY)
        self.locked_base_amount = require_u64(base_amount)
        self.locked_quote_amount = require_u64(quote_amount)
        self.locked_shares_amount = require_u64(shares_amount)
        self.status = UserAccountStatus.BEGIN_DEPOSIT

    def process_deposit(self) -> None:
        self.assert_status(UserAccountStatus.BEGIN_DEPOSIT)
        self.status = UserAccountStatus.PROCESS_DEPOSIT

    def end_deposit(self) -> None:
        self.assert_status(UserAccountStatus.PROCESS_DEPOSIT)
        self._release()

    def cancel_deposit(self) -> None:
        self.assert_status(UserAccountStatus.BEGIN_DEPOSIT, UserAccountStatus.PROCESS_DEPOSIT)
        self._release()

    def _release(self) -> None:
        self.locked_base_amount = 0
        self.locked_quote_amount = 0
        self.locked_shares_amount = 0
        self.status = UserAccountStatus.READY
