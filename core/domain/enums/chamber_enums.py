from __future__ import annotations

from enum import StrEnum


class ChamberMarket(StrEnum):
    """
    Leveraged-farm backends a chamber can deploy into.

    Only one backend is integrated today.
    """

    TULIP = "Tulip"


class UserAccountStatus(StrEnum):
    """
    Deposit protocol stage of a user account.

    READY -> BEGIN_DEPOSIT -> PROCESS_DEPOSIT -> READY is the only legal cycle;
    cancel_deposit returns either in-flight stage straight to READY.
    """

    READY = "Ready"
    BEGIN_DEPOSIT = "BeginDeposit"
    PROCESS_DEPOSIT = "ProcessDeposit"
