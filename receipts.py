"""
Sequential receipt numbers.

A single ``receiptnumber`` document holds the next number to hand out.
Allocation is one atomic ``$inc`` on that document, so concurrent order
creation never sees the same value twice.
"""
import os

from loguru import logger
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import NotInitialized, PersistenceError
from schemas import ReceiptNumber

RECEIPT_NUMBER_SEED = int(os.getenv("RECEIPT_NUMBER_SEED", "1"))
COUNTER_ID = "receiptNumber"
RECEIPT_WIDTH = 4


def format_receipt_no(number: int) -> str:
    return str(number).zfill(RECEIPT_WIDTH)


def seed_counter(db: Database, seed: int = RECEIPT_NUMBER_SEED) -> None:
    """Create the counter document if it does not exist yet.

    Safe to call on every startup: the upsert only writes on insert.
    """
    res = db["receiptnumber"].update_one(
        {"_id": COUNTER_ID},
        {"$setOnInsert": ReceiptNumber(current_receipt_number=seed).model_dump(by_alias=True)},
        upsert=True,
    )
    if res.upserted_id is not None:
        logger.info(f"Receipt counter seeded at {seed}")


def current_value(db: Database) -> int:
    record = db["receiptnumber"].find_one({"_id": COUNTER_ID})
    if not record:
        raise NotInitialized("Receipt number initialization failed")
    return record["currentReceiptNumber"]


def allocate_next(db: Database) -> str:
    try:
        record = db["receiptnumber"].find_one_and_update(
            {"_id": COUNTER_ID},
            {"$inc": {"currentReceiptNumber": 1}},
            return_document=ReturnDocument.BEFORE,
        )
    except PyMongoError as exc:
        raise PersistenceError(f"Could not allocate receipt number: {exc}") from exc
    if not record:
        raise NotInitialized("Receipt number initialization failed")
    return format_receipt_no(record["currentReceiptNumber"])
