from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator, Mapping, Optional, Tuple

from config import get_settings
from core.domain.entities.chamber_entity import ChamberEntity
from core.domain.entities.user_account_entity import UserAccountEntity
from core.domain.gateways.host_interface import HostInterface
from core.domain.repositories.chamber_repository_interface import ChamberRepositoryInterface
from core.domain.repositories.record_transaction_interface import RecordTransactionInterface
from core.domain.repositories.user_account_repository_interface import UserAccountRepositoryInterface
from core.services.authority import VaultAuthority
from core.services.exceptions import ChamberNotFound, InvalidTokenAccount, UserAccountNotFound
from core.services.fixed_point import try_add, try_div, try_mul, value_of
from core.services.leverage import pair_prices, split_borrow
from core.services.normalize import _require_address
from core.services.orchestrator import ExternalOrchestrator
from core.services.price_feed import load_price


@dataclass
class ChamberUseCaseBase:
    """
    Shared wiring of every chamber request: repositories, the host the
    request executes in, and oracle policy.
    """

    chambers: ChamberRepositoryInterface
    users: UserAccountRepositoryInterface
    records: RecordTransactionInterface
    host: HostInterface
    program_id: str
    max_confidence_bps: Optional[int] = None
    max_slot_age: Optional[int] = None

    @classmethod
    def from_settings(cls):
        from adapters.chain.chain_host import ChainHost
        from adapters.external.database.chamber_repository_mongodb import ChamberRepositoryMongoDB
        from adapters.external.database.mongo_transaction import MongoRecordTransaction
        from adapters.external.database.user_account_repository_mongodb import UserAccountRepositoryMongoDB

        s = get_settings()
        return cls(
            chambers=ChamberRepositoryMongoDB(),
            users=UserAccountRepositoryMongoDB(),
            records=MongoRecordTransaction(),
            host=ChainHost.from_settings(),
            program_id=s.CHAMBER_PROGRAM_ID,
            max_confidence_bps=s.ORACLE_MAX_CONFIDENCE_BPS or None,
            max_slot_age=s.ORACLE_MAX_SLOT_AGE or None,
        )

    # ---------- loading ----------

    def _load_chamber(self, address: str) -> ChamberEntity:
        address = _require_address("chamber", address)
        chamber = self.chambers.get_by_address(address)
        if chamber is None:
            raise ChamberNotFound(f"Chamber {address} not found")
        return chamber

    def _load_user_account(self, chamber: ChamberEntity, user: str) -> UserAccountEntity:
        user = _require_address("user", user)
        account = self.users.get(chamber=chamber.address, user=user)
        if account is None:
            raise UserAccountNotFound(f"No account for user {user} in chamber {chamber.address}")
        return account

    def _require_token_account(self, account: str, *, owner: str, mint: str, role: str) -> str:
        """
        `account` must be a token account of `mint` owned by `owner`.
        """
        account = _require_address(role, account)
        held_by = self.host.tokens.owner_of(account)
        held_mint = self.host.tokens.mint_of(account)
        if held_by != owner.lower() or held_mint != mint.lower():
            raise InvalidTokenAccount(
                f"{role} {account} is owned by {held_by or 'nobody'} for mint {held_mint or 'none'}, "
                f"expected owner {owner} and mint {mint}"
            )
        return account

    def _user_token_accounts(
        self,
        chamber: ChamberEntity,
        account: UserAccountEntity,
        user_base: str,
        user_quote: str,
    ) -> Tuple[str, str]:
        """
        Check the user's base / quote / shares accounts before any transfer.
        """
        v = chamber.vault
        self._require_token_account(account.shares, owner=account.user, mint=chamber.config.shares_mint, role="shares")
        return (
            self._require_token_account(user_base, owner=account.user, mint=v.base_mint, role="user_base"),
            self._require_token_account(user_quote, owner=account.user, mint=v.quote_mint, role="user_quote"),
        )

    @contextmanager
    def _request(self) -> Iterator[Any]:
        """
        One request's record writes and chain calls. Records are written
        inside an open record transaction, the chain batch is sent when the
        inner scope exits, and the records commit only after it landed.
        """
        with self.records.transaction() as session:
            with self.host.atomic():
                yield session

    def _authority(self, chamber: ChamberEntity) -> VaultAuthority:
        return VaultAuthority.derive(
            chamber=chamber.address,
            bump=chamber.config.authority_bump,
            program_id=self.program_id,
        )

    def _orchestrator(
        self,
        chamber: ChamberEntity,
        farm_accounts: Optional[Mapping[str, str]] = None,
    ) -> ExternalOrchestrator:
        return ExternalOrchestrator(
            chamber=chamber,
            signer=self._authority(chamber),
            farm=self.host.farm,
            extra_accounts=dict(farm_accounts or {}),
        )

    # ---------- valuation ----------

    def _prices(self, chamber: ChamberEntity) -> Tuple[Decimal, Decimal]:
        oracle = self.host.oracle
        slot = oracle.current_slot()
        out = []
        for feed in (chamber.vault.base_oracle, chamber.vault.quote_oracle):
            out.append(
                load_price(
                    oracle.read_feed(feed),
                    max_confidence_bps=self.max_confidence_bps,
                    current_slot=slot,
                    max_slot_age=self.max_slot_age,
                )
            )
        return out[0], out[1]

    @staticmethod
    def _deposit_value(
        chamber: ChamberEntity,
        base_amount: int,
        quote_amount: int,
        prices: Tuple[Decimal, Decimal],
    ) -> Decimal:
        v = chamber.vault
        return try_add(
            value_of(base_amount, prices[0], v.base_decimals),
            value_of(quote_amount, prices[1], v.quote_decimals),
        )

    @staticmethod
    def _pooled_value(chamber: ChamberEntity, prices: Tuple[Decimal, Decimal]) -> Decimal:
        """
        Value of the net deposits recorded in the accumulators at `prices`.
        """
        v = chamber.vault
        return try_add(
            try_div(try_mul(prices[0], v.base_amount), v.base_decimals),
            try_div(try_mul(prices[1], v.quote_amount), v.quote_decimals),
        )

    @staticmethod
    def _borrow_split(
        chamber: ChamberEntity,
        total_value: Decimal,
        prices: Tuple[Decimal, Decimal],
    ) -> Tuple[int, int]:
        s, v = chamber.strategy, chamber.vault
        # price of one raw unit, so the split comes out in raw token amounts
        base_unit_price = try_div(prices[0], v.base_decimals)
        quote_unit_price = try_div(prices[1], v.quote_decimals)
        volatile_price, underlying_price = pair_prices(s.is_base_volatile, base_unit_price, quote_unit_price)
        return split_borrow(total_value, s.leverage, s.is_base_volatile, volatile_price, underlying_price)
