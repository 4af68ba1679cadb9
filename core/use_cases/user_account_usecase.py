from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from core.domain.entities.user_account_entity import UserAccountEntity
from core.services.authority import derive_user_account_address
from core.services.exceptions import UserAccountAlreadyExists
from core.services.layout import pack_chamber, pack_user_account
from core.services.normalize import _require_address
from core.use_cases.chamber_base_usecase import ChamberUseCaseBase

logger = logging.getLogger(__name__)


@dataclass
class UserAccountUseCase(ChamberUseCaseBase):
    """
    User account creation and read-side views of chambers and positions.
    """

    def create_user_account(self, *, chamber: str, user: str, shares: str) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        user = _require_address("user", user)
        shares = self._require_token_account(shares, owner=user, mint=ch.config.shares_mint, role="shares")

        if self.users.get(chamber=ch.address, user=user) is not None:
            raise UserAccountAlreadyExists(f"User {user} already has an account in chamber {ch.address}")

        account = UserAccountEntity(
            address=derive_user_account_address(chamber=ch.address, user=user, program_id=self.program_id),
            chamber=ch.address,
            user=user,
            shares=shares,
        )
        # the unique index rejects a concurrent create for the same user
        self.users.insert(account)

        logger.info("user account created chamber=%s user=%s address=%s", ch.address, user, account.address)
        return self._account_view(account)

    def get_chamber(self, chamber: str) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        supply = self.host.tokens.supply(ch.config.shares_mint)
        return {
            "address": ch.address,
            "strategy": ch.strategy.model_dump(mode="json"),
            "vault": {
                **ch.vault.model_dump(mode="json"),
                "base_amount": str(ch.vault.base_amount),
                "quote_amount": str(ch.vault.quote_amount),
            },
            "config": ch.config.model_dump(mode="json"),
            "shares_supply": supply,
        }

    def get_chamber_layout(self, chamber: str) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        return {"address": ch.address, "data": "0x" + pack_chamber(ch).hex()}

    def get_user_account(self, *, chamber: str, user: str) -> Dict[str, Any]:
        ch = self._load_chamber(chamber)
        account = self._load_user_account(ch, user)
        view = self._account_view(account)
        view["shares_balance"] = self.host.tokens.balance_of(account.shares)
        return view

    def list_user_accounts(self, chamber: str, *, limit: int = 100) -> List[Dict[str, Any]]:
        ch = self._load_chamber(chamber)
        return [self._account_view(a) for a in self.users.list_by_chamber(ch.address, limit=limit)]

    @staticmethod
    def _account_view(account: UserAccountEntity) -> Dict[str, Any]:
        return {
            "address": account.address,
            "chamber": account.chamber,
            "user": account.user,
            "shares": account.shares,
            "status": account.status,
            "locked_base_amount": account.locked_base_amount,
            "locked_quote_amount": account.locked_quote_amount,
            "locked_shares_amount": account.locked_shares_amount,
            "data": "0x" + pack_user_account(account).hex(),
        }
