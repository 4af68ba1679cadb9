# mongo_transaction.py

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from pymongo import MongoClient
from pymongo.client_session import ClientSession
from pymongo.errors import ConnectionFailure, OperationFailure
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from adapters.external.database.mongo_client import get_mongo_client
from core.domain.repositories.record_transaction_interface import RecordTransactionInterface

logger = logging.getLogger(__name__)

COMMIT_ATTEMPTS = 3


class MongoRecordTransaction(RecordTransactionInterface):
    """
    Multi-document transaction over the chamber collections (needs a replica set).

    Concurrent requests that write the same record conflict inside the
    transaction, before the request reaches the chain.
    """

    def __init__(self, client: Optional[MongoClient] = None) -> None:
        self._client: MongoClient = client if client is not None else get_mongo_client()

    @contextmanager
    def transaction(self) -> Iterator[ClientSession]:
        with self._client.start_session() as session:
            session.start_transaction(
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority"),
            )
            try:
                yield session
            except Exception:
                session.abort_transaction()
                raise
            self._commit(session)

    @staticmethod
    def _commit(session: ClientSession) -> None:
        for attempt in range(1, COMMIT_ATTEMPTS + 1):
            try:
                session.commit_transaction()
                return
            except (ConnectionFailure, OperationFailure) as exc:
                if exc.has_error_label("UnknownTransactionCommitResult") and attempt < COMMIT_ATTEMPTS:
                    logger.warning("record commit outcome unknown, retrying (attempt %s): %s", attempt, exc)
                    continue
                logger.error("record commit failed after the chain calls of the request landed: %s", exc)
                raise
