import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

import entries
import staff as staff_store
import stats
from database import DATABASE_NAME, ensure_indexes, find_by_id, get_db, oid, to_str_id
from errors import NotFound, ShopError, ValidationError
from receipts import seed_counter
from schemas import (
    CamelModel, Customer, Entry, EntryCreate, EntryUpdate, Product, Staff,
    StaffRole, StaffUpdate,
)


# -----------------------------
# Pydantic Schemas (API layer)
# -----------------------------
class CustomerOut(Customer):
    id: str


class ProductOut(Product):
    id: str


class EntryOut(Entry):
    id: str


class EntryPage(CamelModel):
    page: int
    total_pages: int
    total_entries: int
    data: List[EntryOut]


class VisibilityIn(BaseModel):
    visible: Optional[bool] = None


class VisibilityOut(BaseModel):
    id: str
    visible: bool


class StaffOut(CamelModel):
    id: str
    first_name: str
    last_name: str = ""
    phone: str
    email: str
    address: str = ""
    role: StaffRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# -----------------------------
# FastAPI App
# -----------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    db = get_db()
    ensure_indexes(db)
    seed_counter(db)
    stats.refresh_entry_stats(db)
    logger.info(f"Laundry backend ready on database {db.name}")
    yield


app = FastAPI(title="Laundry Shop API - MongoDB", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.warning(f"{request.method} {request.url.path} storage failure: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Database error"})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.get("/")
def root():
    return {"message": "Laundry Backend Running", "driver": "mongodb", "db": DATABASE_NAME}


@app.get("/health")
def health(db: Database = Depends(get_db)):
    try:
        db.command("ping")
        return {"status": "ok"}
    except PyMongoError as e:
        raise HTTPException(status_code=500, detail=str(e))


# -----------------------------
# Entries
# -----------------------------
@app.post("/entries", response_model=EntryOut, status_code=201)
def create_entry(payload: EntryCreate, db: Database = Depends(get_db)):
    return entries.create_entry(db, payload)


@app.get("/entries", response_model=List[EntryOut])
def list_entries(show_all: bool = Query(False, alias="showAll"), db: Database = Depends(get_db)):
    return entries.list_entries(db, show_all=show_all)


@app.get("/entries/paginated", response_model=EntryPage)
def paginate_entries(
    page: int = 1,
    limit: int = 10,
    show_all: bool = Query(False, alias="showAll"),
    db: Database = Depends(get_db),
):
    return entries.paginate_entries(db, page=page, limit=limit, show_all=show_all)


@app.get("/entries/search", response_model=List[EntryOut])
def search_entries(
    q: Optional[str] = Query(None, description="Customer name or receipt number"),
    show_all: bool = Query(False, alias="showAll"),
    db: Database = Depends(get_db),
):
    return entries.search_entries(db, q, show_all=show_all)


@app.get("/entries/{entry_id}", response_model=EntryOut)
def get_entry(entry_id: str, db: Database = Depends(get_db)):
    return entries.get_entry(db, entry_id)


@app.api_route("/entries/{entry_id}", methods=["PUT", "PATCH"], response_model=EntryOut)
def update_entry(entry_id: str, payload: EntryUpdate, db: Database = Depends(get_db)):
    return entries.update_entry(db, entry_id, payload)


@app.delete("/entries/{entry_id}")
def delete_entry(entry_id: str, db: Database = Depends(get_db)):
    entries.delete_entry(db, entry_id)
    return {"message": "Entry deleted successfully"}


@app.patch("/entries/{entry_id}/visibility", response_model=VisibilityOut)
def toggle_visibility(
    entry_id: str,
    payload: Optional[VisibilityIn] = None,
    db: Database = Depends(get_db),
):
    value = payload.visible if payload else None
    return entries.set_visibility(db, entry_id, value)


# -----------------------------
# Stats
# -----------------------------
@app.get("/stats/recent-orders")
def recent_orders(show_all: bool = Query(False, alias="showAll"), db: Database = Depends(get_db)):
    return stats.recent_orders_count(db, show_all=show_all)


@app.get("/stats/pending-deliveries")
def pending_deliveries(
    type: Optional[str] = None,
    page: int = 1,
    show_all: bool = Query(False, alias="showAll"),
    db: Database = Depends(get_db),
):
    return stats.pending_deliveries(db, type=type, page=page, show_all=show_all)


@app.get("/stats/entries")
def entry_stats(db: Database = Depends(get_db)):
    return stats.get_entry_stats(db)


# -----------------------------
# Customers
# -----------------------------
@app.get("/customers", response_model=List[CustomerOut])
def list_customers(db: Database = Depends(get_db)):
    docs = list(db["customer"].find({}).sort("name", 1))
    return [CustomerOut(**to_str_id(d)) for d in docs]


@app.get("/customers/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str, db: Database = Depends(get_db)):
    d = find_by_id(db["customer"], customer_id)
    if not d:
        raise NotFound("Customer not found")
    return CustomerOut(**to_str_id(d))


@app.post("/customers", response_model=CustomerOut, status_code=201)
def create_customer(payload: Customer, db: Database = Depends(get_db)):
    res = db["customer"].insert_one(payload.model_dump(by_alias=True))
    doc = db["customer"].find_one({"_id": res.inserted_id})
    return CustomerOut(**to_str_id(doc))


@app.put("/customers/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: str, payload: Customer, db: Database = Depends(get_db)):
    _id = oid(customer_id)
    if not _id:
        raise NotFound("Customer not found")
    upd = db["customer"].find_one_and_update(
        {"_id": _id}, {"$set": payload.model_dump(by_alias=True)}, return_document=True
    )
    if not upd:
        raise NotFound("Customer not found")
    return CustomerOut(**to_str_id(upd))


@app.delete("/customers/{customer_id}")
def delete_customer(customer_id: str, db: Database = Depends(get_db)):
    _id = oid(customer_id)
    if not _id:
        raise NotFound("Customer not found")
    res = db["customer"].delete_one({"_id": _id})
    if res.deleted_count == 0:
        raise NotFound("Customer not found")
    return {"message": "deleted"}


# -----------------------------
# Products
# -----------------------------
@app.get("/products", response_model=List[ProductOut])
def list_products(
    q: Optional[str] = Query(None, description="Search by name"),
    limit: int = 50,
    offset: int = 0,
    db: Database = Depends(get_db),
):
    filt = {"name": {"$regex": q, "$options": "i"}} if q else {}
    cursor = db["product"].find(filt).sort("name", 1).skip(offset).limit(limit)
    return [ProductOut(**to_str_id(d)) for d in cursor]


@app.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Database = Depends(get_db)):
    d = find_by_id(db["product"], product_id)
    if not d:
        raise NotFound("Product not found")
    return ProductOut(**to_str_id(d))


@app.post("/products", response_model=ProductOut, status_code=201)
def create_product(payload: Product, db: Database = Depends(get_db)):
    if db["product"].find_one({"name": payload.name}):
        raise ValidationError("Product already exists")
    res = db["product"].insert_one(payload.model_dump(by_alias=True))
    return get_product(str(res.inserted_id), db)


@app.put("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: str, payload: Product, db: Database = Depends(get_db)):
    _id = oid(product_id)
    if not _id:
        raise NotFound("Product not found")
    cur = db["product"].find_one({"_id": _id})
    if not cur:
        raise NotFound("Product not found")
    if payload.name != cur.get("name") and db["product"].find_one({"name": payload.name}):
        raise ValidationError("Product already exists")

    db["product"].update_one({"_id": _id}, {"$set": payload.model_dump(by_alias=True)})
    return get_product(product_id, db)


@app.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    _id = oid(product_id)
    if not _id:
        raise NotFound("Product not found")
    res = db["product"].delete_one({"_id": _id})
    if res.deleted_count == 0:
        raise NotFound("Product not found")
    return {"message": "deleted"}


# -----------------------------
# Staff
# -----------------------------
@app.get("/staff", response_model=List[StaffOut])
def list_staff(db: Database = Depends(get_db)):
    return staff_store.list_staff(db)


@app.post("/staff", response_model=StaffOut, status_code=201)
def create_staff(payload: Staff, db: Database = Depends(get_db)):
    return staff_store.create_staff(db, payload)


@app.get("/staff/{staff_id}", response_model=StaffOut)
def get_staff(staff_id: str, db: Database = Depends(get_db)):
    return staff_store.get_staff(db, staff_id)


@app.put("/staff/{staff_id}", response_model=StaffOut)
def update_staff(staff_id: str, payload: StaffUpdate, db: Database = Depends(get_db)):
    return staff_store.update_staff(db, staff_id, payload)


@app.delete("/staff/{staff_id}")
def delete_staff(staff_id: str, db: Database = Depends(get_db)):
    staff_store.delete_staff(db, staff_id)
    return {"message": "deleted"}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
