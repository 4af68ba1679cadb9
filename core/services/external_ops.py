# core/services/external_ops.py
"""
Dispatch table of the leveraged-farm operations the chamber may invoke.

Each entry maps an ExternalOp to its argument schema and to the ordered
account roles of the farm program's published interface. The orchestrator
only ever talks to this table, so adding an operation is a data change.
"""

from __future__ import annotations

from typing import Dict, Union

from core.domain.enums.external_op_enums import ArgKind, ExternalOp
from core.domain.schemas.instruction_types import AccountSpec, ArgSpec, OperationSchema
from core.services.exceptions import CpiInstructionFormationFailed

AUTHORITY_ROLE = "authority"

READONLY_ROLES = frozenset(
    {
        "clock",
        "clock_sysvar",
        "rent",
        "system_program",
        "token_program",
        "token_program_id",
        "lending_program",
        "lending_program_id",
        "liquidity_program_id",
        "swap_or_liquidity_program_id",
        "serum_program_id",
        "stake_program_id",
        "vault_program",
        "dex_program",
        "global",
        "lending_market",
        "lending_market_authority",
        "derived_lending_market_authority",
        "amm_authority",
        "pool_authority",
        "serum_vault_signer",
        "coin_reserve_liquidity_oracle",
        "pc_reserve_liquidity_oracle",
        "lp_pyth_price_account",
        "pyth_price_account",
        "asset_price_account",
        "base_price_account",
        "quote_price_account",
        "coin_price_account",
        "pc_price_account",
        "first_reserve_price",
        "second_reserve_price",
    }
)


def _accounts(*names: str) -> tuple[AccountSpec, ...]:
    return tuple(
        AccountSpec(
            name=n,
            writable=n not in READONLY_ROLES,
            signer=n == AUTHORITY_ROLE,
        )
        for n in names
    )


def _args(*pairs: tuple[str, ArgKind]) -> tuple[ArgSpec, ...]:
    return tuple(ArgSpec(name=n, kind=k) for n, k in pairs)


OPERATION_CATALOG: Dict[ExternalOp, OperationSchema] = {
    schema.op: schema
    for schema in (
        OperationSchema(
            op=ExternalOp.CREATE_USER_FARM,
            args=_args(("solfarm_vault_program", ArgKind.ADDRESS)),
            accounts=_accounts(
                "authority", "user_farm", "user_farm_obligation", "lending_market", "global",
                "leveraged_farm", "clock", "rent", "system_program", "lending_program",
                "token_program", "obligation_vault_address",
            ),
        ),
        OperationSchema(
            op=ExternalOp.CREATE_USER_FARM_OBLIGATION,
            accounts=_accounts(
                "authority", "user_farm", "leveraged_farm", "user_farm_obligation", "lending_market",
                "obligation_vault_address", "clock", "rent", "lending_program", "token_program",
                "system_program",
            ),
        ),
        OperationSchema(
            op=ExternalOp.DEPOSIT_BORROW_DUAL,
            args=_args(
                ("coin_amount", ArgKind.U64),
                ("pc_amount", ArgKind.U64),
                ("coin_borrow_amount", ArgKind.U64),
                ("pc_borrow_amount", ArgKind.U64),
                ("obligation_index", ArgKind.U8),
            ),
            accounts=_accounts(
                "authority", "user_farm", "leveraged_farm", "user_farm_obligation",
                "coin_source_token_account", "coin_destination_token_account",
                "pc_source_token_account", "pc_destination_token_account",
                "coin_deposit_reserve_account", "pc_deposit_reserve_account",
                "coin_reserve_liquidity_oracle", "pc_reserve_liquidity_oracle",
                "lending_market_account", "derived_lending_market_authority", "token_program",
                "lending_program", "coin_source_reserve_liquidity_token_account",
                "pc_source_reserve_liquidity_token_account", "coin_reserve_liquidity_fee_receiver",
                "pc_reserve_liquidity_fee_receiver", "borrow_authorizer", "lp_pyth_price_account",
                "vault_account", "rent", "position_info_account", "system_program",
            ),
        ),
        OperationSchema(
            op=ExternalOp.SWAP_TOKENS,
            args=_args(("obligation_index", ArgKind.U8)),
            accounts=_accounts(
                "authority", "leveraged_farm", "user_farm", "user_farm_obligation", "token_program",
                "vault_signer", "swap_or_liquidity_program_id", "amm_id", "amm_authority",
                "amm_open_orders", "amm_quantities_or_target_orders", "pool_coin_tokenaccount",
                "pool_pc_tokenaccount", "serum_program_id", "serum_market", "serum_bids",
                "serum_asks", "serum_event_queue", "serum_coin_vault_account",
                "serum_pc_vault_account", "serum_vault_signer", "coin_wallet", "pc_wallet",
                "lending_market_account", "lending_market_authority", "lending_program",
                "position_info_account",
            ),
        ),
        OperationSchema(
            op=ExternalOp.ADD_LIQUIDITY,
            args=_args(("obligation_index", ArgKind.U8)),
            accounts=_accounts(
                "authority", "user_farm", "leveraged_farm", "liquidity_program_id", "amm_id",
                "amm_authority", "amm_open_orders", "amm_quantities_or_target_orders",
                "lp_mint_address", "pool_coin_token_account", "pool_pc_token_account",
                "serum_market", "token_program", "lev_farm_coin_token_account",
                "lev_farm_pc_token_account", "user_lp_token_account", "pyth_price_account",
                "lending_market_account", "user_farm_obligation",
                "derived_lending_market_authority", "lending_program", "clock", "dex_program",
                "position_info_account",
            ),
        ),
        OperationSchema(
            op=ExternalOp.STAKE_LP,
            args=_args(
                ("nonce", ArgKind.U8),
                ("meta_nonce", ArgKind.U8),
                ("obligation_index", ArgKind.U64),
            ),
            accounts=_accounts(
                "authority", "user_farm", "obligation_vault_address", "leveraged_farm",
                "vault_program", "authority_token_account", "vault_pda_account", "vault",
                "lp_token_account", "user_balance_account", "system_program", "stake_program_id",
                "pool_id", "pool_authority", "vault_info_account", "pool_lp_token_account",
                "user_reward_a_token_account", "pool_reward_a_token_account",
                "user_reward_b_token_account", "pool_reward_b_token_account", "clock", "rent",
                "token_program_id", "user_balance_metadata", "lending_market_account",
                "user_farm_obligation", "lending_market_authority", "lending_program",
            ),
        ),
        OperationSchema(
            op=ExternalOp.UNSTAKE_LP,
            args=_args(
                ("meta_nonce", ArgKind.U8),
                ("nonce", ArgKind.U8),
                ("obligation_index", ArgKind.U8),
                ("withdraw_percent", ArgKind.U8),
                ("close_method", ArgKind.U8),
            ),
            accounts=_accounts(
                "authority", "user_farm", "obligation_vault_address", "leveraged_farm",
                "authority_token_account", "vault", "vault_program", "user_balance_account",
                "user_info_account", "user_lp_token_account", "user_reward_a_token_account",
                "pool_reward_a_token_account", "user_reward_b_token_account",
                "pool_reward_b_token_account", "token_program_id", "clock", "vault_pda_account",
                "pool_lp_token_account", "pool_authority", "pool_id", "stake_program_id",
                "user_balance_meta", "lending_market_account", "user_farm_obligation",
                "lending_market_authority", "lending_program", "position_info_account",
                "system_program", "rent",
            ),
        ),
        OperationSchema(
            op=ExternalOp.REMOVE_LIQUIDITY,
            args=_args(
                ("obligation_index", ArgKind.U8),
                ("obligation_vault_nonce", ArgKind.U8),
            ),
            accounts=_accounts(
                "user_farm", "obligation_vault_address", "leveraged_farm", "liquidity_program_id",
                "amm_id", "amm_authority", "amm_open_orders", "amm_quantities_or_target_orders",
                "lp_mint_address", "pool_coin_token_account", "pool_pc_token_account",
                "pool_withdraw_queue", "pool_temp_lp_token_account", "serum_program_id",
                "serum_market", "serum_coin_vault_account", "serum_pc_vault_account",
                "serum_vault_signer", "token_program", "lev_farm_coin_token_account",
                "lev_farm_pc_token_account", "user_lp_token_account", "clock_sysvar", "authority",
                "lending_market_account", "user_obligation_account", "lending_market_authority",
                "lending_program_id", "user_position_info", "serum_event_queue",
                "serum_market_bids", "serum_market_asks",
            ),
        ),
        OperationSchema(
            op=ExternalOp.SWAP_TO_REPAY,
            args=_args(("obligation_index", ArgKind.U8)),
            accounts=_accounts(
                "authority", "leveraged_farm", "user_farm", "user_farm_obligation", "token_program",
                "vault_signer", "swap_or_liquidity_program_id", "amm_id", "amm_authority",
                "amm_open_orders", "amm_quantities_or_target_orders", "pool_coin_token_account",
                "pool_pc_token_account", "serum_program_id", "serum_market", "serum_bids",
                "serum_asks", "serum_event_queue", "serum_coin_vault_account",
                "serum_pc_vault_account", "serum_vault_signer", "coin_wallet", "pc_wallet",
                "lending_market_account", "lending_market_authority", "lending_program_id",
                "asset_price_account", "base_price_account", "quote_price_account", "asset_vault",
                "user_position_info", "first_reserve", "first_reserve_price", "second_reserve",
                "second_reserve_price",
            ),
        ),
        OperationSchema(
            op=ExternalOp.REPAY_OBLIGATION,
            args=_args(
                ("reserves", ArgKind.ADDRESS_LIST),
                ("obligation_index", ArgKind.U8),
            ),
            accounts=_accounts(
                "authority", "user_farm", "user_farm_obligation", "leveraged_farm",
                "coin_source_token_account", "coin_destination_token_account",
                "pc_source_token_account", "pc_destination_token_account", "coin_reserve_account",
                "pc_reserve_account", "lending_market_account", "lending_market_authority",
                "clock_sysvar", "token_program", "lending_program", "lp_pyth_price_account",
                "coin_price_account", "pc_price_account", "vault_account",
                "user_coin_token_account", "user_pc_token_account", "position_info_account",
                "first_reserve", "first_reserve_price", "second_reserve", "second_reserve_price",
            ),
        ),
        OperationSchema(
            op=ExternalOp.TOP_UP_POSITION,
            args=_args(
                ("coin_amount", ArgKind.U64),
                ("pc_amount", ArgKind.U64),
                ("obligation_index", ArgKind.U8),
            ),
            accounts=_accounts(
                "authority", "user_farm", "leveraged_farm", "user_farm_obligation",
                "coin_source_token_account", "coin_destination_token_account",
                "pc_source_token_account", "pc_destination_token_account",
                "coin_deposit_reserve_account", "pc_deposit_reserve_account",
                "coin_reserve_liquidity_oracle", "pc_reserve_liquidity_oracle",
                "lending_market_account", "derived_lending_market_authority", "clock",
                "lending_program", "token_program", "position_info_account",
            ),
        ),
        OperationSchema(
            op=ExternalOp.CLOSE_POSITION_INFO,
            accounts=_accounts("authority", "user_farm", "leveraged_farm", "position_info_account"),
        ),
    )
}


def resolve_operation(op: Union[ExternalOp, str]) -> OperationSchema:
    """
    Look up an operation by enum, wire name or member name.

    Raises CpiInstructionFormationFailed when nothing is registered under it.
    """
    key: ExternalOp | None = None
    if isinstance(op, ExternalOp):
        key = op
    elif isinstance(op, str):
        name = op.strip()
        if name in ExternalOp._value2member_map_:
            key = ExternalOp(name)
        elif name.upper() in ExternalOp.__members__:
            key = ExternalOp[name.upper()]

    schema = OPERATION_CATALOG.get(key) if key is not None else None
    if schema is None:
        raise CpiInstructionFormationFailed(f"Unknown external operation: {op!r}")
    return schema
