"""
inventory.py — Service-Tracked Inventory Items

Physical items tracked for after-sales service, independent of catalog
products and order warranties. Each item carries two optional, independent
warranty tracks ("product" and "motor"); each track has its own period,
start date and end date.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List

from . import config
from .entities import InventoryItem, WarrantyTrack
from .errors import DuplicateError
from .models import InventoryItemRequest, WarrantyTrackRequest
from .stores import ShopStores

log = logging.getLogger(__name__)

CATEGORY_PREFIXES = {
    "cooler": "CLR",
    "chimney": "CHM",
    "mixer": "MXR",
    "geyser": "GYS",
    "atta chakki": "ATC",
    "fans": "FAN",
    "crockery": "CRK",
}

TRACKS = ("product_warranty", "motor_warranty")


def category_prefix(category: str) -> str:
    return CATEGORY_PREFIXES.get(category.lower(), category[:3].upper())


def _track_from_request(request: WarrantyTrackRequest) -> WarrantyTrack:
    return WarrantyTrack(
        enabled=request.enabled,
        period_months=request.periodMonths,
        start_date=request.startDate,
        end_date=request.endDate,
    )


class InventoryService:
    def __init__(self, stores: ShopStores):
        self.stores = stores
        self.items = stores.inventory

    def generate_item_code(self, category: str) -> str:
        prefix = category_prefix(category)
        count = len(self.list_by_category(category)) + 1
        code = f"{prefix}-{count:04d}"
        while self.items.code_exists(code):
            count += 1
            code = f"{prefix}-{count:04d}"
        return code

    def create_item(self, request: InventoryItemRequest) -> InventoryItem:
        """
        Registers an item. Missing warranty dates of an enabled track are
        filled in: start from the purchase date, end from start + period.

        Raises:
            DuplicateError: If the given item id is already taken.
        """
        with self.stores.lock:
            if request.itemId and self.items.code_exists(request.itemId):
                raise DuplicateError("InventoryItem", "itemId", request.itemId)

            item = self._build(request)
            item.item_code = request.itemId or self.generate_item_code(request.category)
            for name in TRACKS:
                getattr(item, name).fill_dates(item.date_of_purchase)
            self.items.add(item)
        log.info(f"[Item: {item.item_code}] Registered ({item.category}).")
        return item

    def update_item(self, item_id: int, request: InventoryItemRequest) -> InventoryItem:
        """Replaces the item's fields, including both warranty tracks, and fills missing track dates."""
        with self.stores.lock:
            item = self.items.get(item_id)
            updated = self._build(request)
            for name in (
                "name", "category", "date_of_purchase", "product_warranty", "motor_warranty",
                "item_details", "customer_name", "customer_phone", "serial_number",
                "model", "brand", "status", "notes",
            ):
                setattr(item, name, getattr(updated, name))
            for name in TRACKS:
                getattr(item, name).fill_dates(item.date_of_purchase)
            item.updated_at = datetime.now()
        return item

    def get_item(self, item_id: int) -> InventoryItem:
        return self.items.get(item_id)

    def get_item_by_code(self, item_code: str) -> InventoryItem:
        return self.items.get_by_code(item_code)

    def list_items(self) -> List[InventoryItem]:
        return self.items.all()

    def list_by_category(self, category: str) -> List[InventoryItem]:
        return self.items.find(lambda i: i.category.lower() == category.lower())

    def delete_item(self, item_id: int):
        self.items.delete(item_id)
        log.info(f"[Item id: {item_id}] Deleted.")

    # --- Warranty queries ---

    def list_expiring(self, track: str, today: date = None) -> List[InventoryItem]:
        """Items whose given track ends within the expiring-soon window, today inclusive."""
        today = today or date.today()
        until = today + timedelta(days=config.EXPIRING_SOON_DAYS)

        def expiring(item):
            t = getattr(item, track)
            return t.enabled and t.end_date is not None and today <= t.end_date <= until

        return self.items.find(expiring)

    def list_expired(self, track: str, today: date = None) -> List[InventoryItem]:
        today = today or date.today()

        def expired(item):
            t = getattr(item, track)
            return t.enabled and t.end_date is not None and t.end_date < today

        return self.items.find(expired)

    def list_any_expiring(self, today: date = None) -> List[InventoryItem]:
        seen = {}
        for track in TRACKS:
            for item in self.list_expiring(track, today):
                seen[item.id] = item
        return list(seen.values())

    def warranty_stats(self, today: date = None) -> Dict[str, int]:
        today = today or date.today()
        return {
            "totalItems": self.items.count(),
            "itemsUnderWarranty": len(self.items.find(lambda i: i.has_any_valid_warranty(today))),
            "activeProductWarranties": len(self.items.find(lambda i: i.product_warranty.is_valid(today))),
            "activeMotorWarranties": len(self.items.find(lambda i: i.motor_warranty.is_valid(today))),
            "expiringProductWarranties": len(self.list_expiring("product_warranty", today)),
            "expiringMotorWarranties": len(self.list_expiring("motor_warranty", today)),
            "expiredProductWarranties": len(self.list_expired("product_warranty", today)),
            "expiredMotorWarranties": len(self.list_expired("motor_warranty", today)),
        }

    @staticmethod
    def _build(request: InventoryItemRequest) -> InventoryItem:
        return InventoryItem(
            item_code=request.itemId or "",
            name=request.name,
            category=request.category,
            date_of_purchase=request.dateOfPurchase,
            product_warranty=_track_from_request(request.productWarranty),
            motor_warranty=_track_from_request(request.motorWarranty),
            item_details=request.itemDetails,
            customer_name=request.customerName,
            customer_phone=request.customerPhone,
            serial_number=request.serialNumber,
            model=request.model,
            brand=request.brand,
            status=request.status,
            notes=request.notes,
        )
