import pytest

from core.domain.enums.chamber_enums import UserAccountStatus
from core.domain.enums.external_op_enums import ExternalOp
from core.services.exceptions import InvalidUserAccountStatus
from core.services.shares import ONE_SHARE
from tests.conftest import ALICE, BASE_HOLDING, SHARES_MINT, deposit_kwargs, user_tokens


def _cancel(deposits, chamber, user=ALICE):
    base_acct, quote_acct, _ = user_tokens(user)
    return deposits.cancel_deposit(chamber=chamber, user=user, user_base=base_acct, user_quote=quote_acct)


def test_cancel_after_begin_repays_and_returns_funds(deposits, chamber, funded_users, host, chambers, users):
    deposits.begin_deposit(**deposit_kwargs(chamber, ALICE, base_amount=1000, quote_amount=200))
    host.farm.calls.clear()

    res = _cancel(deposits, chamber)

    assert res["returned"] == (1000, 200)
    assert host.farm.ops == [ExternalOp.SWAP_TO_REPAY.value, ExternalOp.REPAY_OBLIGATION.value]
    assert host.tokens.balance_of(user_tokens(ALICE)[0]) == 10_000
    assert host.tokens.balance_of(user_tokens(ALICE)[1]) == 10_000
    assert host.tokens.balance_of(BASE_HOLDING) == 0

    acc = users.get(chamber=chamber, user=ALICE)
    assert acc.status == UserAccountStatus.READY
    assert (acc.locked_base_amount, acc.locked_quote_amount, acc.locked_shares_amount) == (0, 0, 0)
    ch = chambers.get_by_address(chamber)
    assert (ch.vault.base_amount, ch.vault.quote_amount) == (0, 0)
    assert host.tokens.supply(SHARES_MINT) == 0


def test_cancel_after_process_also_removes_liquidity(deposits, chamber, funded_users, host):
    kw = deposit_kwargs(chamber, ALICE, base_amount=1000)
    deposits.begin_deposit(**kw)
    deposits.process_deposit(chamber=chamber, user=ALICE)
    host.farm.calls.clear()

    _cancel(deposits, chamber)

    assert host.farm.ops == [
        ExternalOp.REMOVE_LIQUIDITY.value,
        ExternalOp.SWAP_TO_REPAY.value,
        ExternalOp.REPAY_OBLIGATION.value,
    ]
    assert host.tokens.balance_of(user_tokens(ALICE)[0]) == 10_000


def test_cancel_from_ready_is_rejected(deposits, chamber, funded_users, host):
    with pytest.raises(InvalidUserAccountStatus):
        _cancel(deposits, chamber)
    assert host.farm.attempts == []


def test_failed_cancel_keeps_deposit_parked(deposits, chamber, funded_users, host, users):
    deposits.begin_deposit(**deposit_kwargs(chamber, ALICE, base_amount=1000))
    host.farm.fail_on.add(ExternalOp.REPAY_OBLIGATION.value)

    with pytest.raises(RuntimeError):
        _cancel(deposits, chamber)

    acc = users.get(chamber=chamber, user=ALICE)
    assert acc.status == UserAccountStatus.BEGIN_DEPOSIT
    assert acc.locked_base_amount == 1000
    assert host.tokens.balance_of(user_tokens(ALICE)[0]) == 9_000


def test_deposit_again_after_cancel(deposits, chamber, funded_users, host):
    deposits.begin_deposit(**deposit_kwargs(chamber, ALICE, base_amount=1000))
    _cancel(deposits, chamber)

    deposits.deposit(**deposit_kwargs(chamber, ALICE, base_amount=300))
    assert host.tokens.balance_of(user_tokens(ALICE)[2]) == 300 * ONE_SHARE
