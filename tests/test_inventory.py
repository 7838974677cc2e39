"""Tests for service-tracked inventory items and their warranty tracks."""

from datetime import date, timedelta

import pytest

from shop_service.entities import WarrantyTrack
from shop_service.errors import DuplicateError, NotFoundError
from shop_service.models import InventoryItemRequest, WarrantyTrackRequest


def item_request(**overrides):
    fields = {
        "name": "Desert Cooler 50L",
        "category": "Cooler",
        "dateOfPurchase": date(2025, 5, 10),
        "productWarranty": WarrantyTrackRequest(enabled=True, periodMonths=12),
    }
    fields.update(overrides)
    return InventoryItemRequest(**fields)


class TestWarrantyTrack:
    def test_fill_dates_from_purchase(self):
        track = WarrantyTrack(enabled=True, period_months=24)

        track.fill_dates(date(2025, 1, 31))

        assert track.start_date == date(2025, 1, 31)
        assert track.end_date == date(2027, 1, 31)

    def test_explicit_dates_kept(self):
        track = WarrantyTrack(enabled=True, period_months=12, start_date=date(2025, 2, 1), end_date=date(2025, 12, 31))

        track.fill_dates(date(2025, 1, 1))

        assert track.start_date == date(2025, 2, 1)
        assert track.end_date == date(2025, 12, 31)

    def test_disabled_track_not_filled(self):
        track = WarrantyTrack(enabled=False, period_months=12)

        track.fill_dates(date(2025, 1, 1))

        assert track.start_date is None
        assert track.end_date is None

    def test_valid_through_end_date(self):
        today = date(2026, 1, 1)
        track = WarrantyTrack(enabled=True, period_months=12, end_date=today)

        assert track.is_valid(today)
        assert not track.is_valid(today + timedelta(days=1))

    def test_days_remaining_floored_at_zero(self):
        today = date(2026, 1, 1)
        track = WarrantyTrack(enabled=True, end_date=today - timedelta(days=5))

        assert track.days_remaining(today) == 0
        track.end_date = today + timedelta(days=5)
        assert track.days_remaining(today) == 5


class TestInventoryService:
    def test_create_fills_enabled_track(self, shop):
        item = shop.inventory.create_item(item_request())

        assert item.product_warranty.start_date == date(2025, 5, 10)
        assert item.product_warranty.end_date == date(2026, 5, 10)
        assert item.motor_warranty.enabled is False
        assert item.motor_warranty.end_date is None

    def test_item_codes_per_category(self, shop):
        first = shop.inventory.create_item(item_request())
        second = shop.inventory.create_item(item_request())
        other = shop.inventory.create_item(item_request(category="Heater"))

        assert first.item_code == "CLR-0001"
        assert second.item_code == "CLR-0002"
        assert other.item_code == "HEA-0001"

    def test_explicit_item_id(self, shop):
        item = shop.inventory.create_item(item_request(itemId="CUSTOM-1"))

        assert shop.inventory.get_item_by_code("CUSTOM-1") is item

    def test_duplicate_item_id_rejected(self, shop):
        shop.inventory.create_item(item_request(itemId="CUSTOM-1"))

        with pytest.raises(DuplicateError):
            shop.inventory.create_item(item_request(itemId="CUSTOM-1"))

    def test_combined_values_use_enabled_tracks(self, shop):
        item = shop.inventory.create_item(item_request(
            productWarranty=WarrantyTrackRequest(enabled=True, endDate=date(2026, 1, 31)),
            motorWarranty=WarrantyTrackRequest(enabled=True, endDate=date(2026, 1, 11)),
        ))
        today = date(2026, 1, 1)

        assert item.has_any_warranty()
        assert item.has_any_valid_warranty(today)
        assert item.days_until_warranty_expiry(today) == 10

    def test_no_tracks(self, shop):
        item = shop.inventory.create_item(item_request(productWarranty=WarrantyTrackRequest()))

        assert not item.has_any_warranty()
        assert not item.has_any_valid_warranty()
        assert item.days_until_warranty_expiry() == 0

    def test_update_replaces_fields(self, shop):
        item = shop.inventory.create_item(item_request())

        shop.inventory.update_item(item.id, item_request(name="Tower Cooler", customerName="Dana"))

        assert item.name == "Tower Cooler"
        assert item.customer_name == "Dana"
        assert item.item_code == "CLR-0001"
        assert item.product_warranty.end_date == date(2026, 5, 10)

    def test_delete(self, shop):
        item = shop.inventory.create_item(item_request())

        shop.inventory.delete_item(item.id)

        with pytest.raises(NotFoundError):
            shop.inventory.get_item(item.id)

    def test_expiring_and_expired_per_track(self, shop):
        today = date(2026, 1, 1)
        expiring = shop.inventory.create_item(item_request(
            productWarranty=WarrantyTrackRequest(enabled=True, endDate=today + timedelta(days=30)),
        ))
        expired = shop.inventory.create_item(item_request(
            productWarranty=WarrantyTrackRequest(enabled=True, endDate=today - timedelta(days=1)),
        ))
        motor = shop.inventory.create_item(item_request(
            productWarranty=WarrantyTrackRequest(),
            motorWarranty=WarrantyTrackRequest(enabled=True, endDate=today + timedelta(days=3)),
        ))

        assert shop.inventory.list_expiring("product_warranty", today) == [expiring]
        assert shop.inventory.list_expired("product_warranty", today) == [expired]
        assert shop.inventory.list_expiring("motor_warranty", today) == [motor]
        assert {i.id for i in shop.inventory.list_any_expiring(today)} == {expiring.id, motor.id}

        stats = shop.inventory.warranty_stats(today)
        assert stats["totalItems"] == 3
        assert stats["itemsUnderWarranty"] == 2
        assert stats["expiredProductWarranties"] == 1
