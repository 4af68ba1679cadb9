# adapters/external/database/mongo_client.py

from __future__ import annotations

from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

from config import get_settings

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def get_mongo_client() -> MongoClient:
    """
    Lazily created MongoClient shared by every chamber repository (MONGO_URI).
    """
    global _client
    if _client is None:
        uri = get_settings().MONGO_URI
        if not uri:
            raise RuntimeError("MONGO_URI is not configured; the chamber store cannot connect to MongoDB.")
        _client = MongoClient(uri)
    return _client


def get_mongo_db() -> Database:
    global _db
    if _db is None:
        db_name = get_settings().MONGO_DB
        if not db_name:
            raise RuntimeError("MONGO_DB is not configured; the chamber store cannot select a database.")
        _db = get_mongo_client()[db_name]
    return _db
