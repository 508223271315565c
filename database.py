"""
MongoDB access for the laundry backend.

The client connects lazily, so importing this module never needs a live
server. Handlers receive the database through ``get_db`` so tests can swap in
an in-memory one.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "laundry")

client = MongoClient(DATABASE_URL)
db = client[DATABASE_NAME]


def get_db() -> Database:
    return db


def ensure_indexes(database: Database) -> None:
    database["entry"].create_index("receiptNo", unique=True)
    database["entry"].create_index([("createdAt", DESCENDING)])
    database["entry"].create_index([("status", ASCENDING), ("visible", ASCENDING)])
    database["entry"].create_index("customer")
    database["product"].create_index("name")
    database["staff"].create_index("email")


# -----------------------------
# Ids
# -----------------------------

def oid(obj: Optional[str]) -> Optional[ObjectId]:
    if obj is None:
        return None
    try:
        return ObjectId(obj)
    except (InvalidId, TypeError):
        return None


def to_str_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    # normalize ObjectId refs to string
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def find_by_id(collection: Collection, raw_id: Optional[str]) -> Optional[Dict[str, Any]]:
    _id = oid(raw_id)
    if not _id:
        return None
    return collection.find_one({"_id": _id})


# -----------------------------
# Datetimes
# -----------------------------
# Mongo keeps datetimes as naive UTC. Everything written goes through
# to_storage and everything read back goes through as_utc.

def to_storage(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return to_storage(datetime.now(timezone.utc))
