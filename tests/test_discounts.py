"""Tests for the discount engine."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from shop_service.entities import CustomerSegment, Discount, DiscountType
from shop_service.errors import DuplicateError, InvalidDiscountError, NotFoundError, ValidationError
from shop_service.models import DiscountRequest, DiscountUpdateRequest


def discount_request(**overrides):
    now = datetime.now()
    fields = {
        "code": "SUMMER20",
        "name": "Summer sale",
        "type": DiscountType.PERCENTAGE,
        "value": Decimal("20"),
        "validFrom": now - timedelta(days=1),
        "validTo": now + timedelta(days=30),
    }
    fields.update(overrides)
    return DiscountRequest(**fields)


def make_discount(**overrides):
    now = datetime.now()
    fields = {
        "code": "TEST",
        "name": "Test discount",
        "type": DiscountType.PERCENTAGE,
        "value": Decimal("20"),
        "valid_from": now - timedelta(days=1),
        "valid_to": now + timedelta(days=1),
    }
    fields.update(overrides)
    return Discount(**fields)


class TestDiscountCalculation:
    def test_percentage_capped_at_maximum(self):
        discount = make_discount(value=Decimal("20"), maximum_discount_amount=Decimal("500"))

        assert discount.calculate_discount(Decimal("5000")) == Decimal("500")

    def test_percentage_below_cap(self):
        discount = make_discount(value=Decimal("20"), maximum_discount_amount=Decimal("500"))

        assert discount.calculate_discount(Decimal("1000")) == Decimal("200.00")

    def test_percentage_rounded_to_cents(self):
        discount = make_discount(value=Decimal("15"))

        assert discount.calculate_discount(Decimal("33.33")) == Decimal("5.00")

    def test_fixed_amount(self):
        discount = make_discount(type=DiscountType.FIXED_AMOUNT, value=Decimal("200"))

        assert discount.calculate_discount(Decimal("2000")) == Decimal("200")

    def test_fixed_amount_never_exceeds_total(self):
        discount = make_discount(type=DiscountType.FIXED_AMOUNT, value=Decimal("200"))

        assert discount.calculate_discount(Decimal("150")) == Decimal("150")

    def test_free_shipping_and_buy_x_get_y_yield_nothing(self):
        for discount_type in (DiscountType.FREE_SHIPPING, DiscountType.BUY_X_GET_Y):
            discount = make_discount(type=discount_type, value=Decimal("10"))
            assert discount.calculate_discount(Decimal("500")) == Decimal("0")

    def test_below_minimum_yields_nothing(self):
        discount = make_discount(
            type=DiscountType.FIXED_AMOUNT,
            value=Decimal("200"),
            minimum_order_amount=Decimal("1500"),
        )

        assert discount.calculate_discount(Decimal("1000")) == Decimal("0")
        assert discount.calculate_discount(Decimal("1500")) == Decimal("200")


class TestDiscountValidity:
    def test_window_bounds_are_inclusive(self):
        start = datetime(2026, 6, 1, 0, 0)
        end = datetime(2026, 6, 30, 23, 59)
        discount = make_discount(valid_from=start, valid_to=end)

        assert discount.is_currently_valid(start)
        assert discount.is_currently_valid(end)
        assert not discount.is_currently_valid(end + timedelta(seconds=1))
        assert not discount.is_currently_valid(start - timedelta(seconds=1))

    def test_inactive_is_invalid(self):
        assert not make_discount(active=False).is_currently_valid()

    def test_usage_limit_reached(self):
        discount = make_discount(usage_limit=5, usage_count=5)

        assert not discount.is_currently_valid()
        assert discount.calculate_discount(Decimal("100")) == Decimal("0")

    def test_usage_below_limit(self):
        assert make_discount(usage_limit=5, usage_count=4).is_currently_valid()


class TestDiscountService:
    def test_create_normalizes_code_and_defaults(self, shop):
        discount = shop.discounts.create_discount(discount_request(code=" summer20 "))

        assert discount.code == "SUMMER20"
        assert discount.usage_count == 0
        assert discount.active is True
        assert discount.auto_apply is False
        assert discount.customer_segment == CustomerSegment.ALL

    def test_duplicate_code_rejected(self, shop):
        shop.discounts.create_discount(discount_request())

        with pytest.raises(DuplicateError):
            shop.discounts.create_discount(discount_request(code="summer20"))

    def test_inverted_window_rejected(self, shop):
        now = datetime.now()
        with pytest.raises(ValidationError):
            shop.discounts.create_discount(discount_request(validFrom=now, validTo=now - timedelta(days=1)))

    def test_unknown_applicable_product_rejected(self, shop):
        with pytest.raises(NotFoundError):
            shop.discounts.create_discount(discount_request(applicableProductIds=[42]))

    def test_lookup_is_case_insensitive(self, shop):
        created = shop.discounts.create_discount(discount_request())

        assert shop.discounts.get_discount_by_code("summer20") is created
        assert shop.discounts.get_discount_by_code("Summer20") is created

    def test_validate_unknown_code(self, shop):
        with pytest.raises(NotFoundError):
            shop.discounts.validate_and_get_discount("MISSING", Decimal("100"))

    def test_validate_below_minimum(self, shop):
        shop.discounts.create_discount(discount_request(
            code="FLAT200",
            type=DiscountType.FIXED_AMOUNT,
            value=Decimal("200"),
            minimumOrderAmount=Decimal("1500"),
        ))

        with pytest.raises(InvalidDiscountError, match="Minimum order amount of 1500 required"):
            shop.discounts.validate_and_get_discount("FLAT200", Decimal("1000"))

    def test_validate_exhausted_code(self, shop):
        discount = shop.discounts.create_discount(discount_request(usageLimit=1))
        shop.discounts.increment_usage(discount.id)

        with pytest.raises(InvalidDiscountError, match="not valid or has expired"):
            shop.discounts.validate_and_get_discount("SUMMER20", Decimal("100"))

    def test_calculate_discount_returns_zero_on_failure(self, shop):
        shop.discounts.create_discount(discount_request(minimumOrderAmount=Decimal("50")))

        assert shop.discounts.calculate_discount("MISSING", Decimal("100")) == Decimal("0")
        assert shop.discounts.calculate_discount("SUMMER20", Decimal("40")) == Decimal("0")
        assert shop.discounts.calculate_discount("SUMMER20", Decimal("100")) == Decimal("20.00")

    def test_decrement_usage_floors_at_zero(self, shop):
        discount = shop.discounts.create_discount(discount_request())

        shop.discounts.decrement_usage(discount.id)

        assert discount.usage_count == 0

    def test_toggle_status(self, shop):
        discount = shop.discounts.create_discount(discount_request())

        assert shop.discounts.toggle_discount_status(discount.id).active is False
        assert shop.discounts.toggle_discount_status(discount.id).active is True

    def test_delete_is_soft(self, shop):
        discount = shop.discounts.create_discount(discount_request())

        shop.discounts.delete_discount(discount.id)

        assert shop.discounts.get_discount(discount.id).active is False
        assert discount in shop.discounts.list_discounts()
        assert discount not in shop.discounts.list_active_discounts()

    def test_partial_update(self, shop):
        discount = shop.discounts.create_discount(discount_request())

        shop.discounts.update_discount(discount.id, DiscountUpdateRequest(name="Renamed"))

        assert discount.name == "Renamed"
        assert discount.value == Decimal("20")
        assert discount.code == "SUMMER20"

    def test_update_rejects_inverted_window(self, shop):
        discount = shop.discounts.create_discount(discount_request())
        original_end = discount.valid_to

        with pytest.raises(ValidationError):
            shop.discounts.update_discount(
                discount.id,
                DiscountUpdateRequest(validTo=discount.valid_from - timedelta(days=1)),
            )

        assert discount.valid_to == original_end

    def test_active_and_auto_apply_lists(self, shop):
        now = datetime.now()
        auto = shop.discounts.create_discount(discount_request(code="AUTO", autoApply=True))
        manual = shop.discounts.create_discount(discount_request(code="MANUAL"))
        expired = shop.discounts.create_discount(discount_request(
            code="OLD",
            autoApply=True,
            validFrom=now - timedelta(days=10),
            validTo=now - timedelta(days=5),
        ))

        active = shop.discounts.list_active_discounts()
        assert auto in active and manual in active
        assert expired not in active
        assert shop.discounts.list_auto_apply_discounts() == [auto]
