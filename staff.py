"""Staff accounts. Passwords are stored as bcrypt hashes and never returned."""
from typing import Any, Dict, List

import bcrypt
from loguru import logger
from pymongo import ReturnDocument
from pymongo.database import Database

from database import find_by_id, oid, to_str_id, utcnow
from errors import NotFound, ValidationError
from schemas import Staff, StaffUpdate


def hash_password(raw: str) -> str:
    return bcrypt.hashpw(raw.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(raw: str, hashed: str) -> bool:
    return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))


def _public(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = to_str_id(doc)
    d.pop("password", None)
    return d


def _email_taken(db: Database, email: str, exclude=None) -> bool:
    query: Dict[str, Any] = {"email": email}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    return db["staff"].find_one(query) is not None


def create_staff(db: Database, payload: Staff) -> Dict[str, Any]:
    if _email_taken(db, payload.email):
        raise ValidationError("Email already registered")
    doc = payload.model_dump(by_alias=True)
    doc["password"] = hash_password(payload.password)
    doc["createdAt"] = doc["updatedAt"] = utcnow()
    res = db["staff"].insert_one(doc)
    logger.info(f"Staff account created: {payload.email} ({payload.role})")
    return _public(db["staff"].find_one({"_id": res.inserted_id}))


def list_staff(db: Database) -> List[Dict[str, Any]]:
    return [_public(d) for d in db["staff"].find({}).sort("firstName", 1)]


def get_staff(db: Database, staff_id: str) -> Dict[str, Any]:
    doc = find_by_id(db["staff"], staff_id)
    if not doc:
        raise NotFound("Staff not found")
    return _public(doc)


def update_staff(db: Database, staff_id: str, patch: StaffUpdate) -> Dict[str, Any]:
    _id = oid(staff_id)
    if not _id:
        raise NotFound("Staff not found")
    changes = patch.model_dump(by_alias=True, exclude_none=True)
    if "email" in changes and _email_taken(db, changes["email"], exclude=_id):
        raise ValidationError("Email already registered")
    if "password" in changes:
        changes["password"] = hash_password(changes["password"])
    changes["updatedAt"] = utcnow()

    doc = db["staff"].find_one_and_update(
        {"_id": _id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFound("Staff not found")
    return _public(doc)


def delete_staff(db: Database, staff_id: str) -> None:
    _id = oid(staff_id)
    if not _id:
        raise NotFound("Staff not found")
    res = db["staff"].delete_one({"_id": _id})
    if res.deleted_count == 0:
        raise NotFound("Staff not found")
    logger.info(f"Staff account {staff_id} deleted")
