from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from core.domain.enums.tx_enums import GasStrategy
from core.services.tx_service import TxService

logger = logging.getLogger(__name__)

ABI_CHAMBER_EXECUTOR = [
    {
        "name": "execute",
        "inputs": [
            {
                "name": "calls",
                "type": "tuple[]",
                "components": [
                    {"name": "target", "type": "address"},
                    {"name": "data", "type": "bytes"},
                ],
            }
        ],
        "outputs": [{"name": "results", "type": "bytes[]"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


@dataclass
class QueuedCall:
    target: str
    data: bytes
    receipt: Dict[str, Any] = field(default_factory=dict)


class ChamberCallRouter:
    """
    Routes the chamber's chain writes and reads.

    Outside `batch()` every write is its own transaction. Inside it, writes
    are queued and reads see the chain as it will be after the queued
    writes (an `eth_call` of the queue followed by the read). When the
    scope exits cleanly the chamber program executes the whole queue as one
    transaction, so either every call of the request lands or none does.
    An exception inside the scope drops the queue unsent.
    """

    def __init__(self, txs: TxService, executor: str, gas_strategy: GasStrategy = GasStrategy.BUFFERED):
        if not executor:
            raise RuntimeError("ChamberCallRouter: executor address (CHAMBER_PROGRAM_ID) not configured")
        self.txs = txs
        self.gas_strategy = gas_strategy
        self.executor = Web3.to_checksum_address(executor)
        self.contract: Contract = txs.w3.eth.contract(address=self.executor, abi=ABI_CHAMBER_EXECUTOR)
        self._queue: Optional[List[QueuedCall]] = None

    @property
    def batching(self) -> bool:
        return self._queue is not None

    def _execute_data(self, calls: Sequence[Tuple[str, bytes]]) -> bytes:
        payload = [(Web3.to_checksum_address(target), bytes(data)) for target, data in calls]
        return HexBytes(self.contract.encode_abi("execute", args=[payload]))

    # ---------------- reads ----------------

    def read(self, to: str, data: bytes) -> bytes:
        if not self._queue:
            return self.txs.call_data(to=to, data=data)
        calls = [(c.target, c.data) for c in self._queue] + [(to, data)]
        raw = self.txs.call_data(to=self.executor, data=self._execute_data(calls))
        results = self.txs.w3.codec.decode(["bytes[]"], raw)[0]
        return bytes(results[-1])

    # ---------------- writes ----------------

    def write(self, to: str, data: bytes, *, label: str) -> Dict[str, Any]:
        if self._queue is None:
            res = self.txs.send_data(to=to, data=data, wait=True, gas_strategy=self.gas_strategy)
            res["op"] = label
            return res
        receipt: Dict[str, Any] = {"op": label, "batch_index": len(self._queue)}
        self._queue.append(QueuedCall(target=to, data=bytes(data), receipt=receipt))
        return receipt

    @contextmanager
    def batch(self) -> Iterator[None]:
        if self._queue is not None:
            # nested scope joins the open batch
            yield
            return

        self._queue = []
        try:
            yield
            queued = self._queue
            self._queue = None
            self._flush(queued)
        finally:
            self._queue = None

    def _flush(self, queued: List[QueuedCall]) -> None:
        if not queued:
            return
        res = self.txs.send_data(
            to=self.executor,
            data=self._execute_data([(c.target, c.data) for c in queued]),
            wait=True,
            gas_strategy=self.gas_strategy,
        )
        for c in queued:
            c.receipt["tx_hash"] = res.get("tx_hash")
            c.receipt["status"] = res.get("status")
        logger.info("chamber batch executed calls=%s tx=%s", len(queued), res.get("tx_hash"))
