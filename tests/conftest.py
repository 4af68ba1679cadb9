from __future__ import annotations

import copy
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from core.domain.entities.chamber_entity import ChamberEntity
from core.domain.entities.user_account_entity import UserAccountEntity
from core.domain.enums.chamber_enums import UserAccountStatus
from core.domain.enums.external_op_enums import ExternalOp
from core.domain.gateways.farm_gateway_interface import FarmGatewayInterface
from core.domain.gateways.host_interface import HostInterface
from core.domain.gateways.oracle_gateway_interface import OracleGatewayInterface
from core.domain.gateways.token_ledger_interface import TokenLedgerInterface
from core.domain.repositories.chamber_repository_interface import ChamberRepositoryInterface
from core.domain.repositories.record_transaction_interface import RecordTransactionInterface
from core.domain.repositories.user_account_repository_interface import UserAccountRepositoryInterface
from core.domain.schemas.instruction_types import ExternalInstruction
from core.services.authority import VaultAuthority
from core.services.exceptions import InsufficientFunds, StaleRecord, UserAccountAlreadyExists
from core.services.external_ops import OPERATION_CATALOG, resolve_operation
from core.services.instruction_codec import decode_args
from core.use_cases.chamber_admin_usecase import ChamberAdminUseCase
from core.use_cases.chamber_deposit_usecase import ChamberDepositUseCase
from core.use_cases.chamber_rebalance_usecase import ChamberRebalanceUseCase
from core.use_cases.chamber_withdraw_usecase import ChamberWithdrawUseCase
from core.use_cases.user_account_usecase import UserAccountUseCase
from tests.price_accounts import build_price_account


def addr(n: int) -> str:
    return "0x" + format(n, "040x")


PROGRAM_ID = addr(0xC0FFEE)
FARM = addr(0xFA12)
FARM_PROGRAM = addr(0xFA13)
BASE_MINT = addr(0xB0)
QUOTE_MINT = addr(0xC0)
BASE_ORACLE = addr(0xB1)
QUOTE_ORACLE = addr(0xC1)
BASE_HOLDING = addr(0xB2)
QUOTE_HOLDING = addr(0xC2)
SHARES_MINT = addr(0x5A)
OWNER = addr(0x0A)
FEE_MANAGER = addr(0x0F)

ALICE = addr(0xA11CE)
BOB = addr(0xB0B)

OWNED_ROLES = {
    "authority",
    "leveraged_farm",
    "coin_source_token_account",
    "pc_source_token_account",
    "coin_reserve_liquidity_oracle",
    "pc_reserve_liquidity_oracle",
}


def farm_accounts() -> Dict[str, str]:
    roles = sorted({a.name for s in OPERATION_CATALOG.values() for a in s.accounts} - OWNED_ROLES)
    out = {name: addr(0x10000 + i) for i, name in enumerate(roles)}
    out["vault_program"] = addr(0x1FFFF)
    return out


def user_tokens(user: str) -> Tuple[str, str, str]:
    """
    (base token account, quote token account, shares account) of a user.
    """
    n = int(user, 16)
    return addr(n + 1), addr(n + 2), addr(n + 3)


def open_user_tokens(tokens, user: str, *, balance: int = 0, shares_mint: str = SHARES_MINT) -> Tuple[str, str, str]:
    """
    Register the user's base, quote and shares accounts with `tokens`.
    """
    base_acct, quote_acct, shares_acct = user_tokens(user)
    tokens.open_account(base_acct, owner=user, mint=BASE_MINT, balance=balance)
    tokens.open_account(quote_acct, owner=user, mint=QUOTE_MINT, balance=balance)
    tokens.open_account(shares_acct, owner=user, mint=shares_mint)
    return base_acct, quote_acct, shares_acct


# ---------------- repositories ----------------


class InMemoryChamberRepository(ChamberRepositoryInterface):
    def __init__(self) -> None:
        self.docs: Dict[str, dict] = {}
        self.saves = 0

    def get_by_address(self, address: str) -> Optional[ChamberEntity]:
        return ChamberEntity.from_mongo(copy.deepcopy(self.docs.get(address.lower())))

    def insert(self, entity: ChamberEntity, *, session: Any = None) -> None:
        self.docs[entity.address] = copy.deepcopy(entity.touch_for_insert().to_mongo())

    def save(self, entity: ChamberEntity, *, session: Any = None) -> None:
        stored = self.docs.get(entity.address)
        if stored is None or stored.get("updated_at") != entity.updated_at:
            raise StaleRecord(f"Chamber {entity.address} changed since it was loaded")
        self.saves += 1
        self.docs[entity.address] = copy.deepcopy(entity.touch_for_update().to_mongo())


class InMemoryUserAccountRepository(UserAccountRepositoryInterface):
    def __init__(self) -> None:
        self.docs: Dict[Tuple[str, str], dict] = {}

    def get(self, *, chamber: str, user: str) -> Optional[UserAccountEntity]:
        return UserAccountEntity.from_mongo(copy.deepcopy(self.docs.get((chamber.lower(), user.lower()))))

    def insert(self, entity: UserAccountEntity, *, session: Any = None) -> None:
        key = (entity.chamber, entity.user)
        if key in self.docs:
            raise UserAccountAlreadyExists(f"User {entity.user} already has an account in chamber {entity.chamber}")
        self.docs[key] = copy.deepcopy(entity.touch_for_insert().to_mongo())

    def save(self, entity: UserAccountEntity, *, expected_status: UserAccountStatus, session: Any = None) -> None:
        key = (entity.chamber, entity.user)
        stored = self.docs.get(key)
        if (
            stored is None
            or stored.get("updated_at") != entity.updated_at
            or stored.get("status") != UserAccountStatus(expected_status).value
        ):
            raise StaleRecord(f"User account {entity.user} in chamber {entity.chamber} changed since it was loaded")
        self.docs[key] = copy.deepcopy(entity.touch_for_update().to_mongo())

    def list_by_chamber(self, chamber: str, *, limit: int = 100) -> Sequence[UserAccountEntity]:
        docs = [d for (c, _), d in self.docs.items() if c == chamber.lower()]
        return [UserAccountEntity.from_mongo(copy.deepcopy(d)) for d in docs[:limit]]

    def list_in_flight(self, chamber: str, *, limit: int = 10) -> Sequence[UserAccountEntity]:
        return [a for a in self.list_by_chamber(chamber) if a.status != UserAccountStatus.READY.value][:limit]


class InMemoryRecordTransaction(RecordTransactionInterface):
    """
    Snapshots the repositories' documents and puts them back when the
    scope raises.
    """

    def __init__(self, *repos) -> None:
        self.repos = repos
        self.commits = 0
        self.aborts = 0

    @contextmanager
    def transaction(self):
        snapshot = [copy.deepcopy(r.docs) for r in self.repos]
        try:
            yield self
        except Exception:
            self.aborts += 1
            for repo, docs in zip(self.repos, snapshot):
                repo.docs = docs
            raise
        self.commits += 1


# ---------------- host fakes ----------------


class FakeTokenLedger(TokenLedgerInterface):
    def __init__(self) -> None:
        self.balances: Dict[str, int] = {}
        self.supplies: Dict[str, int] = {}
        self.owners: Dict[str, str] = {}
        self.mints: Dict[str, str] = {}

    def open_account(self, account: str, *, owner: str, mint: str, balance: int = 0) -> None:
        account = account.lower()
        self.owners[account] = owner.lower()
        self.mints[account] = mint.lower()
        self.balances[account] = balance

    def _move(self, account: str, delta: int) -> None:
        held = self.balances.get(account, 0)
        if held + delta < 0:
            raise InsufficientFunds(f"{account} holds {held}, cannot debit {-delta}")
        self.balances[account] = held + delta

    def balance_of(self, account: str) -> int:
        return self.balances.get(account.lower(), 0)

    def supply(self, mint: str) -> int:
        return self.supplies.get(mint.lower(), 0)

    def owner_of(self, account: str) -> str:
        return self.owners.get(account.lower(), "")

    def mint_of(self, account: str) -> str:
        return self.mints.get(account.lower(), "")

    def transfer(self, *, source: str, destination: str, amount: int, authority: str) -> None:
        self._move(source, -amount)
        self._move(destination, amount)

    def mint_to(self, *, mint: str, destination: str, amount: int, authority: str) -> None:
        self._move(destination, amount)
        self.supplies[mint] = self.supplies.get(mint, 0) + amount

    def burn(self, *, mint: str, source: str, amount: int, owner: str) -> None:
        self._move(source, -amount)
        self.supplies[mint] = self.supplies.get(mint, 0) - amount


class FakeFarm(FarmGatewayInterface):
    """
    Leveraged farm stand-in.

    Collateral leaves the chamber holdings on deposit-borrow and comes back
    on repay. In-flight tranches move borrowed -> lp -> staked; an unwind
    releases a percentage of the staked position (plus `profit` on a full
    unwind), a cancel releases the in-flight tranches.
    """

    def __init__(self, tokens: FakeTokenLedger) -> None:
        self.tokens = tokens
        self.calls: List[ExternalInstruction] = []
        self.attempts: List[str] = []
        self.fail_on: set = set()
        self.signers: List[str] = []

        self.tranches: List[dict] = []
        self.staked = [0, 0]
        self.pending: Optional[List[int]] = None
        self.holdings: Optional[Tuple[str, str]] = None
        self.profit = (0, 0)

    @property
    def ops(self) -> List[str]:
        return [ix.op.value for ix in self.calls]

    def args_of(self, op: ExternalOp) -> List[dict]:
        return [decode_args(resolve_operation(op), ix.data) for ix in self.calls if ix.op == op]

    def _release(self, stage: str) -> None:
        self.pending = self.pending or [0, 0]
        for t in [t for t in self.tranches if t["stage"] == stage]:
            self.pending[0] += t["base"]
            self.pending[1] += t["quote"]
            self.tranches.remove(t)

    def invoke(self, ix: ExternalInstruction, signer: VaultAuthority):
        self.attempts.append(ix.op.value)
        if ix.op.value in self.fail_on:
            raise RuntimeError(f"farm rejected {ix.op.value}")
        assert ix.signers() == [signer.address]

        schema = resolve_operation(ix.op)
        args = decode_args(schema, ix.data)

        if ix.op == ExternalOp.DEPOSIT_BORROW_DUAL:
            base_acct = ix.account("coin_source_token_account", schema).address
            quote_acct = ix.account("pc_source_token_account", schema).address
            self.holdings = (base_acct, quote_acct)
            self.tokens._move(base_acct, -args["coin_amount"])
            self.tokens._move(quote_acct, -args["pc_amount"])
            self.tranches.append({"base": args["coin_amount"], "quote": args["pc_amount"], "stage": "borrowed"})
        elif ix.op == ExternalOp.ADD_LIQUIDITY:
            for t in self.tranches:
                if t["stage"] == "borrowed":
                    t["stage"] = "lp"
        elif ix.op == ExternalOp.STAKE_LP:
            for t in [t for t in self.tranches if t["stage"] == "lp"]:
                self.staked[0] += t["base"]
                self.staked[1] += t["quote"]
                self.tranches.remove(t)
        elif ix.op == ExternalOp.UNSTAKE_LP:
            pct = args["withdraw_percent"]
            out = [self.staked[0] * pct // 100, self.staked[1] * pct // 100]
            self.staked = [self.staked[0] - out[0], self.staked[1] - out[1]]
            if pct == 100:
                out = [out[0] + self.profit[0], out[1] + self.profit[1]]
            self.pending = out
        elif ix.op == ExternalOp.REMOVE_LIQUIDITY:
            if self.pending is None:
                self._release("lp")
        elif ix.op == ExternalOp.SWAP_TO_REPAY:
            if self.pending is None:
                self._release("borrowed")
        elif ix.op == ExternalOp.REPAY_OBLIGATION:
            if self.pending and self.holdings:
                self.tokens._move(self.holdings[0], self.pending[0])
                self.tokens._move(self.holdings[1], self.pending[1])
            self.pending = None

        self.calls.append(ix)
        self.signers.append(signer.address)
        return {"op": ix.op.value, "status": 1}


class FakeOracle(OracleGatewayInterface):
    def __init__(self) -> None:
        self.feeds: Dict[str, bytes] = {}
        self.slot: Optional[int] = None

    def set_price(self, feed: str, price: int, expo: int = 0, **kw) -> None:
        self.feeds[feed] = build_price_account(price=price, expo=expo, **kw)

    def read_feed(self, address: str) -> bytes:
        return self.feeds[address]

    def current_slot(self) -> Optional[int]:
        return self.slot


class FakeHost(HostInterface):
    def __init__(self) -> None:
        self._tokens = FakeTokenLedger()
        self._farm = FakeFarm(self._tokens)
        self._oracle = FakeOracle()
        self.rollbacks = 0

    @property
    def farm(self) -> FakeFarm:
        return self._farm

    @property
    def tokens(self) -> FakeTokenLedger:
        return self._tokens

    @property
    def oracle(self) -> FakeOracle:
        return self._oracle

    def _state(self):
        f = self._farm
        return copy.deepcopy(
            (self._tokens.balances, self._tokens.supplies, f.calls, f.signers, f.tranches, f.staked, f.pending, f.holdings)
        )

    @contextmanager
    def atomic(self):
        snapshot = self._state()
        try:
            yield
        except Exception:
            self.rollbacks += 1
            (
                self._tokens.balances,
                self._tokens.supplies,
                self._farm.calls,
                self._farm.signers,
                self._farm.tranches,
                self._farm.staked,
                self._farm.pending,
                self._farm.holdings,
            ) = snapshot
            raise


# ---------------- fixtures ----------------


@pytest.fixture
def host() -> FakeHost:
    h = FakeHost()
    h.oracle.set_price(BASE_ORACLE, 1)
    h.oracle.set_price(QUOTE_ORACLE, 1)
    return h


@pytest.fixture
def chambers() -> InMemoryChamberRepository:
    return InMemoryChamberRepository()


@pytest.fixture
def users() -> InMemoryUserAccountRepository:
    return InMemoryUserAccountRepository()


@pytest.fixture
def records(chambers, users) -> InMemoryRecordTransaction:
    return InMemoryRecordTransaction(chambers, users)


@pytest.fixture
def make_use_case(host, chambers, users, records):
    def _make(cls):
        return cls(
            chambers=chambers,
            users=users,
            records=records,
            host=host,
            program_id=PROGRAM_ID,
            max_confidence_bps=200,
        )

    return _make


def initialize_chamber(admin: ChamberAdminUseCase, *, leverage: int = 3, is_base_volatile: bool = True, **overrides) -> str:
    params = dict(
        farm=FARM,
        farm_program=FARM_PROGRAM,
        leverage=leverage,
        is_base_volatile=is_base_volatile,
        nonce=0,
        authority_bump=255,
        base=BASE_HOLDING,
        quote=QUOTE_HOLDING,
        base_mint=BASE_MINT,
        quote_mint=QUOTE_MINT,
        base_oracle=BASE_ORACLE,
        quote_oracle=QUOTE_ORACLE,
        base_decimals=0,
        quote_decimals=0,
        owner=OWNER,
        fee_manager=FEE_MANAGER,
        shares_mint=SHARES_MINT,
        farm_accounts=farm_accounts(),
    )
    params.update(overrides)
    return admin.initialize(**params)["chamber"]


@pytest.fixture
def chamber(make_use_case, host) -> str:
    address = initialize_chamber(make_use_case(ChamberAdminUseCase))
    host.farm.calls.clear()
    host.farm.attempts.clear()
    return address


@pytest.fixture
def funded_users(make_use_case, chamber, host):
    """
    Alice and Bob with user accounts and 10_000 base / 10_000 quote each.
    """
    uc = make_use_case(UserAccountUseCase)
    for user in (ALICE, BOB):
        _, _, shares_acct = open_user_tokens(host.tokens, user, balance=10_000)
        uc.create_user_account(chamber=chamber, user=user, shares=shares_acct)
    return (ALICE, BOB)


@pytest.fixture
def deposits(make_use_case) -> ChamberDepositUseCase:
    return make_use_case(ChamberDepositUseCase)


@pytest.fixture
def withdrawals(make_use_case) -> ChamberWithdrawUseCase:
    return make_use_case(ChamberWithdrawUseCase)


@pytest.fixture
def rebalancer(make_use_case) -> ChamberRebalanceUseCase:
    return make_use_case(ChamberRebalanceUseCase)


def deposit_kwargs(chamber: str, user: str, base_amount: int = 0, quote_amount: int = 0) -> dict:
    base_acct, quote_acct, _ = user_tokens(user)
    return dict(
        chamber=chamber,
        user=user,
        base_amount=base_amount,
        quote_amount=quote_amount,
        user_base=base_acct,
        user_quote=quote_acct,
    )
