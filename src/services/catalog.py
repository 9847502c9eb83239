"""
Catalog service: load the inventory CSV and filter it for recommendations.
"""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from src.logger import get_logger
from src.messages import msg

logger = get_logger(__name__)

ANY = "any"

# Columns returned for each recommendation, in order
RECOMMENDATION_FIELDS = (
    "Category",
    "Subcategory",
    "Gender",
    "Product Name",
    "Brand",
    "Price (AUD)",
    "Short Description",
    "SKU",
)

_NON_NUMERIC = re.compile(r"[^0-9.\-]+")


def parse_price(value: Optional[str]) -> float:
    """Parse a price cell such as "$129.99", treating junk as 0."""
    cleaned = _NON_NUMERIC.sub("", value or "0")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


@dataclass
class InventoryFilter:
    """Recommendation filters. Text fields equal to "any" are ignored."""
    product_name: str = ANY
    sub_category: str = ANY
    brand: str = ANY
    short_description: str = ANY
    price_min: Optional[float] = None
    price_max: Optional[float] = None

    @property
    def has_price_range(self) -> bool:
        return self.price_min is not None and self.price_max is not None


def _contains(cell: Optional[str], wanted: str) -> bool:
    if wanted.strip().lower() == ANY:
        return True
    return wanted.lower() in (cell or "").lower()


def matches(item: dict, filters: InventoryFilter) -> bool:
    """True if an inventory row passes every active filter."""
    if not _contains(item.get("Product Name"), filters.product_name):
        return False
    if not _contains(item.get("Subcategory"), filters.sub_category):
        return False
    if not _contains(item.get("Brand"), filters.brand):
        return False
    if not _contains(item.get("Short Description"), filters.short_description):
        return False
    if filters.has_price_range:
        price = parse_price(item.get("Price (AUD)"))
        if price < filters.price_min or price > filters.price_max:
            return False
    return True


class InventoryCatalog:
    """In-memory inventory loaded from CSV."""

    def __init__(self, items: Optional[Iterable[dict]] = None) -> None:
        self._items: list[dict] = list(items or [])

    @classmethod
    def load(cls, path: Path | str) -> "InventoryCatalog":
        """Load rows from a CSV file with a header line."""
        path = Path(path)
        with open(path, newline="", encoding="utf-8-sig") as f:
            items = list(csv.DictReader(f))
        logger.info(f"Inventory loaded: {len(items)} items from {path}")
        return cls(items)

    def __len__(self) -> int:
        return len(self._items)

    def search(self, filters: InventoryFilter) -> list[dict]:
        return [item for item in self._items if matches(item, filters)]

    def recommend(self, filters: InventoryFilter) -> dict:
        """Build the /api/recommend response body."""
        found = self.search(filters)
        logger.debug(f"Catalog search {filters} matched {len(found)} item(s)")
        if not found:
            return {
                "success": True,
                "recommendations": [],
                "message": msg("catalog.no_matches"),
            }
        return {
            "success": True,
            "recommendations": [
                {field: item.get(field) for field in RECOMMENDATION_FIELDS}
                for item in found
            ],
        }
