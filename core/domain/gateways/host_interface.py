from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager

from core.domain.gateways.farm_gateway_interface import FarmGatewayInterface
from core.domain.gateways.oracle_gateway_interface import OracleGatewayInterface
from core.domain.gateways.token_ledger_interface import TokenLedgerInterface


class HostInterface(ABC):
    """
    Execution environment a chamber request runs in.

    `atomic()` scopes one request: every external call, transfer and record
    write of the request happens inside it, and an exception escaping the
    scope must leave no effect of the request behind.
    """

    @property
    @abstractmethod
    def farm(self) -> FarmGatewayInterface:
        raise NotImplementedError

    @property
    @abstractmethod
    def tokens(self) -> TokenLedgerInterface:
        raise NotImplementedError

    @property
    @abstractmethod
    def oracle(self) -> OracleGatewayInterface:
        raise NotImplementedError

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        raise NotImplementedError
