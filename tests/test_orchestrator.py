import pytest

from core.domain.enums.external_op_enums import ExternalOp
from core.services.authority import VaultAuthority
from core.services.exceptions import CpiInstructionFormationFailed, InvalidChamberAuthority
from core.services.external_ops import OPERATION_CATALOG, resolve_operation
from core.services.instruction_codec import decode_args
from core.services.orchestrator import ExternalOrchestrator
from tests.conftest import BASE_HOLDING, FARM, FARM_PROGRAM, PROGRAM_ID, QUOTE_HOLDING, addr


@pytest.fixture
def orch(chambers, chamber, host) -> ExternalOrchestrator:
    ch = chambers.get_by_address(chamber)
    signer = VaultAuthority.derive(chamber=ch.address, bump=ch.config.authority_bump, program_id=PROGRAM_ID)
    return ExternalOrchestrator(chamber=ch, signer=signer, farm=host.farm)


@pytest.mark.parametrize("name", ["deposit_borrow_dual", "DEPOSIT_BORROW_DUAL", "Deposit_Borrow_Dual"])
def test_resolve_by_wire_or_member_name(name):
    assert resolve_operation(name).op == ExternalOp.DEPOSIT_BORROW_DUAL


@pytest.mark.parametrize("name", ["flash_loan", "", 7, None])
def test_unknown_operation_fails_formation(name):
    with pytest.raises(CpiInstructionFormationFailed):
        resolve_operation(name)


def test_only_authority_role_signs():
    for schema in OPERATION_CATALOG.values():
        signers = [a.name for a in schema.accounts if a.signer]
        assert signers == ["authority"], schema.op


def test_build_fills_owned_roles_and_targets_farm_program(orch):
    ix = orch.build(ExternalOp.TOP_UP_POSITION, {"coin_amount": 1, "pc_amount": 2, "obligation_index": 0})
    schema = resolve_operation(ExternalOp.TOP_UP_POSITION)

    assert ix.program_id == FARM_PROGRAM
    assert ix.signers() == [orch.signer.address]
    assert ix.account("leveraged_farm", schema).address == FARM
    assert ix.account("coin_source_token_account", schema).address == BASE_HOLDING
    assert ix.account("pc_source_token_account", schema).address == QUOTE_HOLDING
    assert ix.account("coin_reserve_liquidity_oracle", schema).writable is False
    assert decode_args(schema, ix.data) == {"coin_amount": 1, "pc_amount": 2, "obligation_index": 0}


def test_request_cannot_redirect_owned_roles(chambers, chamber, host):
    ch = chambers.get_by_address(chamber)
    signer = VaultAuthority.derive(chamber=ch.address, bump=ch.config.authority_bump, program_id=PROGRAM_ID)
    hijack = {"coin_source_token_account": addr(0xBAD), "authority": addr(0xBAD), "user_farm": addr(0xF00D)}
    orch = ExternalOrchestrator(chamber=ch, signer=signer, farm=host.farm, extra_accounts=hijack)

    ix = orch.build(ExternalOp.CLOSE_POSITION_INFO)
    schema = resolve_operation(ExternalOp.CLOSE_POSITION_INFO)
    assert ix.account("authority", schema).address == signer.address
    # non-owned roles can be supplied per request
    assert ix.account("user_farm", schema).address == addr(0xF00D)

    top_up = orch.build(ExternalOp.TOP_UP_POSITION, {"coin_amount": 0, "pc_amount": 0, "obligation_index": 0})
    assert top_up.account("coin_source_token_account", resolve_operation(ExternalOp.TOP_UP_POSITION)).address == BASE_HOLDING


def test_missing_account_fails_before_any_call(chambers, chamber, host):
    ch = chambers.get_by_address(chamber)
    ch.farm_accounts.pop("amm_id")
    signer = VaultAuthority.derive(chamber=ch.address, bump=ch.config.authority_bump, program_id=PROGRAM_ID)
    orch = ExternalOrchestrator(chamber=ch, signer=signer, farm=host.farm)

    with pytest.raises(CpiInstructionFormationFailed, match="amm_id"):
        orch.execute(orch.prepare(orch.deposit_steps(base_amount=1, quote_amount=0, base_borrow=1, quote_borrow=0)))
    assert host.farm.attempts == []


def test_unknown_step_fails_whole_plan_before_any_call(orch, host):
    steps = orch.form_lp_steps() + [("flash_loan", {})]
    with pytest.raises(CpiInstructionFormationFailed):
        orch.execute(orch.prepare(steps))
    assert host.farm.attempts == []


def test_invalid_account_address_fails_formation(orch):
    orch.extra_accounts = {"user_farm": "not-an-address"}
    with pytest.raises(CpiInstructionFormationFailed):
        orch.build(ExternalOp.CLOSE_POSITION_INFO)


def test_foreign_signer_is_rejected(chambers, chamber, host):
    ch = chambers.get_by_address(chamber)
    wrong = VaultAuthority.derive(chamber=ch.address, bump=ch.config.authority_bump - 1, program_id=PROGRAM_ID)
    with pytest.raises(InvalidChamberAuthority):
        ExternalOrchestrator(chamber=ch, signer=wrong, farm=host.farm)


def test_execute_runs_in_order(orch, host):
    orch.execute(orch.prepare(orch.unwind_steps(40)))
    assert host.farm.ops == [
        ExternalOp.UNSTAKE_LP.value,
        ExternalOp.REMOVE_LIQUIDITY.value,
        ExternalOp.SWAP_TO_REPAY.value,
        ExternalOp.REPAY_OBLIGATION.value,
    ]
    assert host.farm.args_of(ExternalOp.UNSTAKE_LP)[0]["withdraw_percent"] == 40


def test_cancel_plans_depend_on_stage(orch):
    assert [op for op, _ in orch.cancel_steps("BeginDeposit")] == [
        ExternalOp.SWAP_TO_REPAY,
        ExternalOp.REPAY_OBLIGATION,
    ]
    assert [op for op, _ in orch.cancel_steps("ProcessDeposit")] == [
        ExternalOp.REMOVE_LIQUIDITY,
        ExternalOp.SWAP_TO_REPAY,
        ExternalOp.REPAY_OBLIGATION,
    ]
