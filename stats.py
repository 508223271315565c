"""
Dashboard statistics over entries.

Calendar buckets ("today", the trailing week, months, years) are always taken
in Asia/Kolkata, whatever the server's local zone is.
"""
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from loguru import logger
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import as_utc, to_str_id, to_storage, utcnow
from errors import InvalidArgument, NotFound
from schemas import ENTRY_STATUSES, EntryStat

BUSINESS_TZ = ZoneInfo("Asia/Kolkata")
PENDING_PAGE_SIZE = 5
ENTRY_STATS_ID = "entryStats"

ORDER_LIST_FIELDS = {
    "customer": 1,
    "customerId": 1,
    "receiptNo": 1,
    "status": 1,
    "charges": 1,
    "pickupAndDelivery": 1,
    "createdAt": 1,
}


# Only visible entries unless showAll=true
def visibility_filter(show_all: bool) -> Dict[str, Any]:
    return {} if show_all else {"visible": True}


def local_now(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(BUSINESS_TZ)
    return as_utc(now).astimezone(BUSINESS_TZ)


def local_date(value: datetime) -> date:
    return as_utc(value).astimezone(BUSINESS_TZ).date()


def today_window(now: Optional[datetime] = None) -> Tuple[str, datetime, datetime]:
    """Return today's date string and its storage-time bounds, inclusive."""
    day = local_now(now).date()
    start = datetime.combine(day, time.min, BUSINESS_TZ)
    end = datetime.combine(day, time.max, BUSINESS_TZ)
    return day.isoformat(), to_storage(start), to_storage(end)


def _bump(buckets: Dict[Any, Dict[str, float]], key: Any, amount: float) -> None:
    bucket = buckets.setdefault(key, {"totalSales": 0, "orderCount": 0})
    bucket["totalSales"] += amount
    bucket["orderCount"] += 1


def recent_orders_count(db: Database, show_all: bool = False,
                        now: Optional[datetime] = None) -> Dict[str, Any]:
    """Total orders plus yearly, monthly (current year) and trailing-week sales."""
    today = local_now(now).date()
    week = [today - timedelta(days=i) for i in range(6, -1, -1)]

    total = 0
    yearly: Dict[int, Dict[str, float]] = {}
    monthly: Dict[int, Dict[str, float]] = {}
    weekly: Dict[date, Dict[str, float]] = {}

    cursor = db["entry"].find(
        visibility_filter(show_all), {"createdAt": 1, "charges.totalAmount": 1}
    )
    for doc in cursor:
        total += 1
        created = doc.get("createdAt")
        if created is None:
            continue
        amount = (doc.get("charges") or {}).get("totalAmount") or 0
        day = local_date(created)
        _bump(yearly, day.year, amount)
        if day.year == today.year:
            _bump(monthly, day.month, amount)
        if week[0] <= day <= today:
            _bump(weekly, day, amount)

    empty = {"totalSales": 0, "orderCount": 0}
    return {
        "totalOrders": total,
        "yearlySales": [{"year": year, **yearly[year]} for year in sorted(yearly)],
        "monthlySales": [
            {"month": month, **monthly.get(month, empty)}
            for month in range(1, today.month + 1)
        ],
        "weeklyData": [
            {"date": day.isoformat(), **weekly.get(day, empty)} for day in week
        ],
    }


def _today_expected_filter(start: datetime, end: datetime) -> Dict[str, Any]:
    return {
        "pickupAndDelivery.expectedDeliveryDate": {"$gte": start, "$lte": end},
        "status": {"$ne": "delivered"},
    }


def _today_received_filter(start: datetime, end: datetime) -> Dict[str, Any]:
    return {"createdAt": {"$gte": start, "$lte": end}}


def status_summary(db: Database, show_all: bool = False,
                   now: Optional[datetime] = None) -> Dict[str, Any]:
    """Per-status counts plus today's expected deliveries and received orders."""
    vis = visibility_filter(show_all)
    today, start, end = today_window(now)

    counts = {status: 0 for status in ENTRY_STATUSES}
    pipeline = [
        {"$match": vis},
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
    ]
    for row in db["entry"].aggregate(pipeline):
        if row["_id"] in counts:
            counts[row["_id"]] = row["count"]

    today_expected = db["entry"].count_documents({**vis, **_today_expected_filter(start, end)})
    today_received = db["entry"].count_documents({**vis, **_today_received_filter(start, end)})

    return {
        **counts,
        "todayExpected": today_expected,
        "todayReceived": today_received,
        "total": sum(counts.values()),
        "date": today,
    }


def pending_deliveries(db: Database, type: Optional[str] = None, page: int = 1,
                       show_all: bool = False, now: Optional[datetime] = None) -> Dict[str, Any]:
    if page < 1:
        raise InvalidArgument("page must be 1 or greater")

    if not type:
        s = status_summary(db, show_all=show_all, now=now)
        return {
            "summary": {
                "pending": {"count": s["pending"]},
                "collected": {"count": s["collected"]},
                "processedAndPacked": {"count": s["processedAndPacked"]},
                "delivered": {"count": s["delivered"]},
                "todayExpected": {"count": s["todayExpected"], "date": s["date"]},
                "todayReceived": {"count": s["todayReceived"], "date": s["date"]},
                "total": s["total"],
            }
        }

    today, start, end = today_window(now)
    query = visibility_filter(show_all)
    if type in ENTRY_STATUSES:
        query["status"] = type
    elif type == "todayExpected":
        query.update(_today_expected_filter(start, end))
    elif type == "todayReceived":
        query.update(_today_received_filter(start, end))
    else:
        raise InvalidArgument("Invalid type parameter")

    count = db["entry"].count_documents(query)
    cursor = (
        db["entry"].find(query, ORDER_LIST_FIELDS)
        .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        .skip((page - 1) * PENDING_PAGE_SIZE)
        .limit(PENDING_PAGE_SIZE)
    )
    result: Dict[str, Any] = {
        "type": type,
        "count": count,
        "page": page,
        "totalPages": math.ceil(count / PENDING_PAGE_SIZE),
        "orders": [to_str_id(d) for d in cursor],
    }
    if type.startswith("today"):
        result["date"] = today
    return result


def refresh_entry_stats(db: Database, now: Optional[datetime] = None) -> bool:
    """Recompute the EntryStat record from visible entries.

    Runs after every entry mutation. A failure leaves the previous record in
    place and is only logged; the mutation that triggered it has already been
    committed.
    """
    try:
        s = status_summary(db, now=now)
        stat = EntryStat(
            pending=s["pending"],
            collected=s["collected"],
            processed_and_packed=s["processedAndPacked"],
            delivered=s["delivered"],
            today_expected=s["todayExpected"],
            today_received=s["todayReceived"],
            total=s["total"],
            date=s["date"],
            updated_at=utcnow(),
        )
        db["entrystat"].update_one(
            {"_id": ENTRY_STATS_ID}, {"$set": stat.model_dump(by_alias=True)}, upsert=True
        )
    except PyMongoError:
        logger.exception("Failed to refresh entry statistics")
        return False
    logger.debug(f"Entry statistics refreshed: total={s['total']}")
    return True


manual_update_stats = refresh_entry_stats


def get_entry_stats(db: Database) -> Dict[str, Any]:
    stats = db["entrystat"].find_one({"_id": ENTRY_STATS_ID})
    if not stats:
        raise NotFound("Statistics not found")
    return to_str_id(stats)
