"""
Entry (customer order) store.

Every mutation refreshes the EntryStat summary once it has been written.
"""
import math
import re
from typing import Any, Dict, List, Optional

from loguru import logger
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from catalog import enrich_with_tax
from database import find_by_id, oid, to_str_id, utcnow
from errors import InvalidArgument, NotFound, ValidationError
from receipts import allocate_next
from schemas import Charges, Entry, EntryCreate, EntryUpdate
from stats import refresh_entry_stats, visibility_filter

NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]

# status -> pickupAndDelivery field stamped on every transition into it
STATUS_STAMPS = {
    "collected": "pickupDate",
    "processedAndPacked": "processedAndPackedDate",
    "delivered": "deliveryDate",
}


def normalize_tax_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Default missing line-item ``tax`` and ``charges.taxAmount`` to 0.

    Applied in place on both the create and the update path.
    """
    for line in doc.get("products") or []:
        if line.get("tax") is None:
            line["tax"] = 0
    charges = doc.get("charges")
    if charges is not None and charges.get("taxAmount") is None:
        charges["taxAmount"] = 0
    return doc


def create_entry(db: Database, payload: EntryCreate) -> Dict[str, Any]:
    pickup = payload.pickup_and_delivery
    if (
        not (payload.customer or "").strip()
        or not payload.customer_id
        or pickup is None
        or pickup.expected_delivery_date is None
    ):
        raise ValidationError("Customer, customerId and expected delivery date are required")

    customer = find_by_id(db["customer"], payload.customer_id)
    if not customer:
        raise NotFound("Customer not found")

    # A number allocated here stays consumed even if the insert fails.
    receipt_no = allocate_next(db)
    stamp = utcnow()
    entry = Entry(
        customer=payload.customer,
        customer_id=payload.customer_id,
        customer_phone=customer.get("phone"),
        receipt_no=receipt_no,
        products=payload.products,
        charges=payload.charges or Charges(),
        pickup_and_delivery=pickup,
        discount=payload.discount or 0,
        remarks=payload.remarks or "",
        created_at=stamp,
        updated_at=stamp,
    )
    doc = normalize_tax_fields(entry.model_dump(by_alias=True, exclude_none=True))
    res = db["entry"].insert_one(doc)
    logger.info(f"Entry created: receipt {receipt_no} for customer {payload.customer_id}")

    refresh_entry_stats(db)
    return to_str_id(db["entry"].find_one({"_id": res.inserted_id}))


def get_entry(db: Database, entry_id: str) -> Dict[str, Any]:
    doc = find_by_id(db["entry"], entry_id)
    if not doc:
        raise NotFound("Entry not found")
    return enrich_with_tax(db, to_str_id(doc))


def list_entries(db: Database, show_all: bool = False) -> List[Dict[str, Any]]:
    cursor = db["entry"].find(visibility_filter(show_all)).sort(NEWEST_FIRST)
    return [to_str_id(d) for d in cursor]


def paginate_entries(db: Database, page: int = 1, limit: int = 10,
                     show_all: bool = False) -> Dict[str, Any]:
    if page < 1 or limit < 1:
        raise InvalidArgument("page and limit must be 1 or greater")

    query = visibility_filter(show_all)
    total = db["entry"].count_documents(query)
    cursor = db["entry"].find(query).sort(NEWEST_FIRST).skip((page - 1) * limit).limit(limit)
    return {
        "page": page,
        "totalPages": math.ceil(total / limit),
        "totalEntries": total,
        "data": [to_str_id(d) for d in cursor],
    }


def search_entries(db: Database, q: Optional[str], show_all: bool = False) -> List[Dict[str, Any]]:
    """Match customer names by case-insensitive substring, or receipt numbers.

    A numeric query matches the receipt with that number regardless of
    zero padding, so "7" and "0007" both find receipt "0007".
    """
    term = (q or "").strip()
    if not term:
        raise InvalidArgument("Search query is required")

    clauses: List[Dict[str, Any]] = [
        {"customer": {"$regex": re.escape(term), "$options": "i"}}
    ]
    try:
        number = int(term)
    except ValueError:
        number = None
    if number is not None and number >= 0:
        clauses.append({"receiptNo": str(number).zfill(4)})

    query: Dict[str, Any] = {"$or": clauses, **visibility_filter(show_all)}
    entries = [to_str_id(d) for d in db["entry"].find(query).sort(NEWEST_FIRST)]
    if not entries:
        raise NotFound("No entries found")
    return entries


def update_entry(db: Database, entry_id: str, patch: EntryUpdate) -> Dict[str, Any]:
    _id = oid(entry_id)
    if not _id:
        raise NotFound("Entry not found")

    changes = normalize_tax_fields(patch.model_dump(by_alias=True, exclude_none=True))
    update: Dict[str, Any] = {
        f"pickupAndDelivery.{key}": value
        for key, value in changes.pop("pickupAndDelivery", {}).items()
    }
    update.update(changes)

    stamp = utcnow()
    # TODO: decide with the shop whether re-sending the current status should keep the first stamp.
    stamp_field = STATUS_STAMPS.get(changes.get("status"))
    if stamp_field:
        update[f"pickupAndDelivery.{stamp_field}"] = stamp
    update["updatedAt"] = stamp

    doc = db["entry"].find_one_and_update(
        {"_id": _id}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFound("Entry not found")
    logger.info(f"Entry {entry_id} updated: {sorted(update)}")

    refresh_entry_stats(db)
    return to_str_id(doc)


def delete_entry(db: Database, entry_id: str) -> None:
    _id = oid(entry_id)
    if not _id:
        raise NotFound("Entry not found")
    res = db["entry"].delete_one({"_id": _id})
    if res.deleted_count == 0:
        raise NotFound("Entry not found")
    logger.info(f"Entry {entry_id} deleted")

    refresh_entry_stats(db)


def set_visibility(db: Database, entry_id: str, value: Optional[bool] = None) -> Dict[str, Any]:
    """Set ``visible`` to ``value``, or flip it when ``value`` is None."""
    doc = find_by_id(db["entry"], entry_id)
    if not doc:
        raise NotFound("Entry not found")

    visible = (not doc.get("visible", True)) if value is None else value
    db["entry"].update_one(
        {"_id": doc["_id"]}, {"$set": {"visible": visible, "updatedAt": utcnow()}}
    )
    logger.info(f"Entry {entry_id} is now {'visible' if visible else 'hidden'}")

    refresh_entry_stats(db)
    return {"id": str(doc["_id"]), "visible": visible}
