"""
Database Schemas for the laundry shop backend (MongoDB)

Each Pydantic model represents a collection in MongoDB. Collection name is the
lowercase of the class name by convention (Entry -> "entry",
ReceiptNumber -> "receiptnumber"). Documents are stored with camelCase keys,
which is also the JSON shape of the API.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from database import to_storage

EntryStatus = Literal["pending", "collected", "processedAndPacked", "delivered"]
ENTRY_STATUSES = ("pending", "collected", "processedAndPacked", "delivered")

StaffRole = Literal["admin", "staff"]

PHONE_PATTERN = r"^[6-9]\d{9}$"
EMAIL_PATTERN = r"\S+@\S+\.\S+"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Master Data
class Customer(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None


class Product(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    price: float = 0.0
    tax: float = Field(0.0, ge=0, description="Percentage, e.g. 5.0 for 5%")
    active: bool = True


# Entries (customer orders)
class ProductLine(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    product_name: str
    quantity: float = 1
    price: float = 0.0
    tax: Optional[float] = None


class Charges(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    total_amount: float = 0.0
    tax_amount: Optional[float] = None


class PickupAndDelivery(CamelModel):
    expected_delivery_date: Optional[datetime] = None
    pickup_date: Optional[datetime] = None
    processed_and_packed_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None

    @field_validator("*")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_storage(value) if value is not None else None


class Entry(CamelModel):
    customer: str
    customer_id: str
    customer_phone: Optional[str] = None
    receipt_no: str
    products: List[ProductLine] = []
    charges: Charges = Field(default_factory=Charges)
    pickup_and_delivery: PickupAndDelivery
    status: EntryStatus = "pending"
    visible: bool = True
    discount: float = 0
    remarks: str = ""
    created_at: datetime
    updated_at: datetime


# Singletons
class ReceiptNumber(CamelModel):
    current_receipt_number: int = 1


class EntryStat(CamelModel):
    pending: int = 0
    collected: int = 0
    processed_and_packed: int = 0
    delivered: int = 0
    today_expected: int = 0
    today_received: int = 0
    total: int = 0
    date: str
    updated_at: datetime


# Staff accounts
class _StaffFields(CamelModel):
    @field_validator("first_name", "last_name", "phone", "address", mode="before", check_fields=False)
    @classmethod
    def _trim(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def _normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class Staff(_StaffFields):
    first_name: str = Field(..., min_length=1)
    last_name: str = ""
    phone: str = Field(..., pattern=PHONE_PATTERN)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    address: str = ""
    role: StaffRole = "staff"


class StaffUpdate(_StaffFields):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    password: Optional[str] = Field(None, min_length=6)
    address: Optional[str] = None
    role: Optional[StaffRole] = None


# API payloads consumed by the stores
class EntryCreate(CamelModel):
    customer: Optional[str] = None
    customer_id: Optional[str] = None
    products: List[ProductLine] = []
    charges: Optional[Charges] = None
    pickup_and_delivery: Optional[PickupAndDelivery] = None
    discount: Optional[float] = None
    remarks: Optional[str] = None


class EntryUpdate(CamelModel):
    """Partial update of an entry. receiptNo and customerId cannot change."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    customer: Optional[str] = Field(None, min_length=1)
    products: Optional[List[ProductLine]] = None
    charges: Optional[Charges] = None
    pickup_and_delivery: Optional[PickupAndDelivery] = None
    status: Optional[EntryStatus] = None
    visible: Optional[bool] = None
    discount: Optional[float] = None
    remarks: Optional[str] = None
