# user_account_repository_mongodb.py

from __future__ import annotations

from typing import Any, Optional, Sequence

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from adapters.external.database.helper_repo import sanitize_for_mongo
from adapters.external.database.mongo_client import get_mongo_db
from core.domain.entities.user_account_entity import UserAccountEntity
from core.domain.enums.chamber_enums import UserAccountStatus
from core.domain.repositories.user_account_repository_interface import UserAccountRepositoryInterface
from core.services.exceptions import StaleRecord, UserAccountAlreadyExists
from core.services.normalize import _norm_lower


class UserAccountRepositoryMongoDB(UserAccountRepositoryInterface):
    """
    Collection: user_accounts
    """

    COLLECTION_NAME = "user_accounts"

    def __init__(self, db: Optional[Database] = None) -> None:
        self._db: Database = db if db is not None else get_mongo_db()
        self._collection: Collection = self._db[self.COLLECTION_NAME]

    @property
    def collection(self) -> Collection:
        return self._collection

    def ensure_indexes(self) -> None:
        self._collection.create_index(
            [("chamber", 1), ("user", 1)], unique=True, name="ux_user_accounts_chamber_user"
        )
        self._collection.create_index([("chamber", 1), ("status", 1)], name="ix_user_accounts_chamber_status")

    def get(self, *, chamber: str, user: str) -> Optional[UserAccountEntity]:
        doc = self._collection.find_one({"chamber": _norm_lower(chamber), "user": _norm_lower(user)})
        return UserAccountEntity.from_mongo(doc)

    def insert(self, entity: UserAccountEntity, *, session: Any = None) -> None:
        entity = entity.touch_for_insert()
        doc = sanitize_for_mongo(entity.to_mongo())
        doc.pop("_id", None)
        try:
            self._collection.insert_one(doc, session=session)
        except DuplicateKeyError as exc:
            raise UserAccountAlreadyExists(
                f"User {entity.user} already has an account in chamber {entity.chamber}"
            ) from exc

    def save(self, entity: UserAccountEntity, *, expected_status: UserAccountStatus, session: Any = None) -> None:
        loaded_at = entity.updated_at
        entity = entity.touch_for_update()
        doc = sanitize_for_mongo(entity.to_mongo())
        doc.pop("_id", None)
        res = self._collection.replace_one(
            {
                "chamber": entity.chamber,
                "user": entity.user,
                "status": UserAccountStatus(expected_status).value,
                "updated_at": loaded_at,
            },
            doc,
            upsert=False,
            session=session,
        )
        if res.matched_count != 1:
            raise StaleRecord(
                f"User account {entity.user} in chamber {entity.chamber} is no longer {expected_status}"
            )

    def list_by_chamber(self, chamber: str, *, limit: int = 100) -> Sequence[UserAccountEntity]:
        cursor = self._collection.find({"chamber": _norm_lower(chamber)}, sort=[("created_at", 1)]).limit(int(limit))
        return [UserAccountEntity.from_mongo(d) for d in cursor if d]

    def list_in_flight(self, chamber: str, *, limit: int = 10) -> Sequence[UserAccountEntity]:
        cursor = self._collection.find(
            {"chamber": _norm_lower(chamber), "status": {"$ne": UserAccountStatus.READY.value}},
        ).limit(int(limit))
        return [UserAccountEntity.from_mongo(d) for d in cursor if d]
