# chamber_repository_mongodb.py

from __future__ import annotations

from typing import Any, Optional

from pymongo.collection import Collection
from pymongo.database import Database

from adapters.external.database.helper_repo import sanitize_for_mongo
from adapters.external.database.mongo_client import get_mongo_db
from core.domain.entities.chamber_entity import ChamberEntity
from core.domain.repositories.chamber_repository_interface import ChamberRepositoryInterface
from core.services.exceptions import StaleRecord
from core.services.normalize import _norm_lower


class ChamberRepositoryMongoDB(ChamberRepositoryInterface):
    """
    Collection: chambers
    """

    COLLECTION_NAME = "chambers"

    def __init__(self, db: Optional[Database] = None) -> None:
        self._db: Database = db if db is not None else get_mongo_db()
        self._collection: Collection = self._db[self.COLLECTION_NAME]

    @property
    def collection(self) -> Collection:
        return self._collection

    def ensure_indexes(self) -> None:
        self._collection.create_index([("address", 1)], unique=True, name="ux_chambers_address")
        self._collection.create_index([("strategy.farm", 1)], name="ix_chambers_farm")
        self._collection.create_index([("config.owner", 1)], name="ix_chambers_owner")

    def get_by_address(self, address: str) -> Optional[ChamberEntity]:
        doc = self._collection.find_one({"address": _norm_lower(address)})
        return ChamberEntity.from_mongo(doc)

    def insert(self, entity: ChamberEntity, *, session: Any = None) -> None:
        entity = entity.touch_for_insert()
        doc = sanitize_for_mongo(entity.to_mongo())
        doc.pop("_id", None)
        self._collection.insert_one(doc, session=session)

    def save(self, entity: ChamberEntity, *, session: Any = None) -> None:
        loaded_at = entity.updated_at
        entity = entity.touch_for_update()
        doc = sanitize_for_mongo(entity.to_mongo())
        doc.pop("_id", None)
        res = self._collection.replace_one(
            {"address": entity.address, "updated_at": loaded_at},
            doc,
            upsert=False,
            session=session,
        )
        if res.matched_count != 1:
            raise StaleRecord(f"Chamber {entity.address} changed since it was loaded")
