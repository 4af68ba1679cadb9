from .farm_gateway_interface import FarmGatewayInterface
from .host_interface import HostInterface
from .oracle_gateway_interface import OracleGatewayInterface
from .token_ledger_interface import TokenLedgerInterface

__all__ = [
    "FarmGatewayInterface",
    "HostInterface",
    "OracleGatewayInterface",
    "TokenLedgerInterface",
]
