"""Read-time tax enrichment of entry line items from the product catalog."""
from typing import Any, Dict, Iterable

from pymongo.database import Database


def product_tax_map(db: Database, names: Iterable[str]) -> Dict[str, float]:
    wanted = list({n for n in names if n})
    if not wanted:
        return {}
    tax_map: Dict[str, float] = {name: 0 for name in wanted}
    for p in db["product"].find({"name": {"$in": wanted}}, {"name": 1, "tax": 1}):
        tax_map[p["name"]] = p.get("tax") or 0
    return tax_map


def enrich_with_tax(db: Database, entry: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``entry`` whose line items carry the current catalog tax.

    Nothing is written back, so an order's historical tax follows the catalog.
    """
    products = entry.get("products") or []
    tax_map = product_tax_map(db, (p.get("productName") for p in products))
    enriched = {**entry}
    enriched["products"] = [
        {**p, "tax": tax_map.get(p.get("productName"), 0)} for p in products
    ]
    return enriched
