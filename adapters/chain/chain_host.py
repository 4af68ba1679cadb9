from __future__ import annotations

from contextlib import AbstractContextManager

from adapters.chain.call_batch import ChamberCallRouter
from adapters.chain.farm_program import FarmProgramGateway
from adapters.chain.token_ledger import TokenLedgerAdapter
from adapters.external.oracle.price_feed_http_client import PriceFeedHttpClient
from config import get_settings
from core.domain.enums.tx_enums import GasStrategy
from core.domain.gateways.farm_gateway_interface import FarmGatewayInterface
from core.domain.gateways.host_interface import HostInterface
from core.domain.gateways.oracle_gateway_interface import OracleGatewayInterface
from core.domain.gateways.token_ledger_interface import TokenLedgerInterface
from core.services.tx_service import TxService


class ChainHost(HostInterface):
    """
    Production host: farm calls and token moves go through one
    ChamberCallRouter, prices come from the oracle RPC.

    `atomic()` is the router's batch: the request's calls are sent as a
    single transaction when the scope exits, and not at all if it raises.
    """

    def __init__(
        self,
        farm: FarmGatewayInterface,
        tokens: TokenLedgerInterface,
        oracle: OracleGatewayInterface,
        router: ChamberCallRouter,
    ):
        self._farm = farm
        self._tokens = tokens
        self._oracle = oracle
        self._router = router

    @classmethod
    def from_settings(cls) -> "ChainHost":
        s = get_settings()
        txs = TxService(s.RPC_URL_DEFAULT)
        router = ChamberCallRouter(
            txs,
            s.CHAMBER_PROGRAM_ID,
            gas_strategy=GasStrategy.parse(s.FARM_GAS_STRATEGY),
        )
        return cls(
            farm=FarmProgramGateway(router),
            tokens=TokenLedgerAdapter(txs.w3, s.TOKEN_PROGRAM_ID, router),
            oracle=PriceFeedHttpClient.from_settings(),
            router=router,
        )

    @property
    def farm(self) -> FarmGatewayInterface:
        return self._farm

    @property
    def tokens(self) -> TokenLedgerInterface:
        return self._tokens

    @property
    def oracle(self) -> OracleGatewayInterface:
        return self._oracle

    def atomic(self) -> AbstractContextManager[None]:
        return self._router.batch()
