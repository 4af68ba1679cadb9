from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config import get_settings
from core.domain.gateways.oracle_gateway_interface import OracleGatewayInterface
from core.services.exceptions import InvalidOracleData


@dataclass
class PriceFeedHttpClient(OracleGatewayInterface):
    """
    Reads raw price accounts from the oracle network's JSON-RPC endpoint.
    """

    rpc_url: str
    timeout: float = 15.0

    @classmethod
    def from_settings(cls) -> "PriceFeedHttpClient":
        st = get_settings()
        return cls(rpc_url=(st.ORACLE_RPC_URL or "").rstrip("/"))

    def _rpc(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        with httpx.Client(timeout=self.timeout) as cli:
            res = cli.post(self.rpc_url, json=payload)
            data: Dict[str, Any] = res.json() if res.content else {}
        if res.status_code >= 400 or data.get("error"):
            err = data.get("error") or {}
            raise RuntimeError(err.get("message") or f"oracle_rpc_error_{res.status_code}")
        return data.get("result")

    def read_feed(self, address: str) -> bytes:
        """
        getAccountInfo(address, encoding=base64) -> raw account data.
        """
        result = self._rpc("getAccountInfo", [address, {"encoding": "base64"}]) or {}
        value = result.get("value")
        if not value:
            raise InvalidOracleData(f"Oracle account {address} not found")
        data = value.get("data") or []
        if not isinstance(data, list) or not data or not isinstance(data[0], str):
            raise InvalidOracleData(f"Oracle account {address} returned no data")
        try:
            return base64.b64decode(data[0], validate=True)
        except ValueError as exc:
            raise InvalidOracleData(f"Oracle account {address} data is not base64") from exc

    def current_slot(self) -> Optional[int]:
        slot = self._rpc("getSlot", [])
        return int(slot) if slot is not None else None
