"""Fixtures shared by the test modules.

Every test gets a fresh in-memory MongoDB (mongomock) that replaces the
module-level database, so the HTTP app and the stores see the same data.
"""
import threading
from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from entries import create_entry
from main import app
from receipts import seed_counter
from schemas import EntryCreate


@pytest.fixture
def mongo_db(monkeypatch):
    """Yield a seeded mongomock database patched in as ``database.db``."""
    mock_db = mongomock.MongoClient()["laundry_test"]
    monkeypatch.setattr(database, "db", mock_db)
    seed_counter(mock_db)
    return mock_db


@pytest.fixture
def client(mongo_db):
    """Yield a TestClient with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def customer_id(mongo_db):
    res = mongo_db["customer"].insert_one({"name": "Abcd Corp", "phone": "9876543210"})
    return str(res.inserted_id)


def entry_payload(customer_id, **overrides):
    payload = {
        "customer": "abcd corp",
        "customerId": customer_id,
        "products": [
            {"productName": "Shirt", "quantity": 2, "price": 40},
            {"productName": "Saree", "quantity": 1, "price": 150, "tax": 5},
        ],
        "charges": {"totalAmount": 230},
        "pickupAndDelivery": {"expectedDeliveryDate": "2026-10-20T10:00:00+05:30"},
        "remarks": "starch collars",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_entry(mongo_db, customer_id):
    """Create an entry through the store and return it."""

    def _make(**overrides):
        return create_entry(mongo_db, EntryCreate(**entry_payload(customer_id, **overrides)))

    return _make


def entry_doc(created_at: datetime, total: float = 0, status: str = "pending",
              visible: bool = True, expected: datetime = None, receipt_no: str = None):
    """Build a raw entry document for inserting straight into the collection."""
    doc = {
        "customer": "walk-in",
        "customerId": "000000000000000000000000",
        "status": status,
        "visible": visible,
        "charges": {"totalAmount": total, "taxAmount": 0},
        "pickupAndDelivery": {"expectedDeliveryDate": expected or created_at},
        "createdAt": created_at,
        "updatedAt": created_at,
    }
    if receipt_no is not None:
        doc["receiptNo"] = receipt_no
    return doc


class SerializedCollection:
    """Wrap a mongomock collection so single-document updates are atomic,
    as they are on a MongoDB server."""

    def __init__(self, collection, lock):
        self._collection = collection
        self._lock = lock

    def find_one_and_update(self, *args, **kwargs):
        with self._lock:
            return self._collection.find_one_and_update(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._collection, name)


class SerializedDatabase:
    def __init__(self, db):
        self._db = db
        self._locks = {}
        self._guard = threading.Lock()

    def __getitem__(self, name):
        with self._guard:
            lock = self._locks.setdefault(name, threading.Lock())
        return SerializedCollection(self._db[name], lock)
