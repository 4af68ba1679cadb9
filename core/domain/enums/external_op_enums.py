from __future__ import annotations

from enum import StrEnum


class ExternalOp(StrEnum):
    """
    Logical operations the chamber can invoke on the leveraged-farm program.

    Values are the wire names hashed into the instruction selector.
    """

    CREATE_USER_FARM = "create_user_farm"
    CREATE_USER_FARM_OBLIGATION = "create_user_farm_obligation"
    DEPOSIT_BORROW_DUAL = "deposit_borrow_dual"
    SWAP_TOKENS = "swap_tokens_raydium_stats"
    ADD_LIQUIDITY = "add_liquidity_stats"
    STAKE_LP = "deposit_raydium_vault"
    UNSTAKE_LP = "withdraw_raydium_vault_close"
    REMOVE_LIQUIDITY = "remove_liquidity_new"
    SWAP_TO_REPAY = "swap_to_repay_raydium"
    REPAY_OBLIGATION = "repay_obligation_liquidity_external"
    TOP_UP_POSITION = "top_up_position_stats"
    CLOSE_POSITION_INFO = "close_position_info_account"


class ArgKind(StrEnum):
    """
    Wire types accepted in an operation's argument schema.
    """

    U8 = "u8"
    U64 = "u64"
    U128 = "u128"
    BOOL = "bool"
    ADDRESS = "address"
    ADDRESS_LIST = "address_list"
