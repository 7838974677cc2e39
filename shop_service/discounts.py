"""
discounts.py — Discount Engine

Validates discount codes against an order subtotal, computes discount amounts
and keeps usage counters. Also provides the administrative operations on
discount definitions (create, update, toggle, soft delete).

Validity rule:
    A discount is currently valid iff it is active, now lies within
    [validFrom, validTo] and its usage limit (if any) is not yet reached.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List

from .entities import ZERO, CustomerSegment, Discount
from .errors import InvalidDiscountError, NotFoundError, ValidationError
from .models import DiscountRequest, DiscountUpdateRequest
from .stores import ShopStores

log = logging.getLogger(__name__)


class DiscountService:
    """Discount code validation, calculation and administration."""

    def __init__(self, stores: ShopStores):
        self.stores = stores
        self.discounts = stores.discounts

    # --- Administration ---

    def create_discount(self, request: DiscountRequest) -> Discount:
        """
        Creates a discount from an admin definition.

        Args:
            request (DiscountRequest): The definition. The code is upper-cased.

        Returns:
            Discount: The stored discount with usage count 0.

        Raises:
            DuplicateError: If the code is already taken.
            ValidationError: If validTo is before validFrom.
            NotFoundError: If an applicable product id does not exist.
        """
        if request.validTo < request.validFrom:
            raise ValidationError("validTo must not be before validFrom")

        for product_id in request.applicableProductIds:
            self.stores.catalog.get_product(product_id)

        discount = Discount(
            code=request.code.strip().upper(),
            name=request.name,
            description=request.description,
            type=request.type,
            value=request.value,
            minimum_order_amount=request.minimumOrderAmount,
            maximum_discount_amount=request.maximumDiscountAmount,
            valid_from=request.validFrom,
            valid_to=request.validTo,
            usage_limit=request.usageLimit,
            per_customer_limit=request.perCustomerLimit,
            customer_segment=request.customerSegment or CustomerSegment.ALL,
            applicable_product_ids=set(request.applicableProductIds),
            applicable_category_ids=set(request.applicableCategoryIds),
            active=True if request.active is None else request.active,
            auto_apply=False if request.autoApply is None else request.autoApply,
        )
        self.discounts.add(discount)
        log.info(f"[Discount: {discount.code}] Created ({discount.type.value}, value {discount.value}).")
        return discount

    def get_discount(self, discount_id: int) -> Discount:
        return self.discounts.get(discount_id)

    def get_discount_by_code(self, code: str) -> Discount:
        discount = self.discounts.find_by_code(code)
        if discount is None:
            raise NotFoundError("Discount", "code", code)
        return discount

    def list_discounts(self) -> List[Discount]:
        return self.discounts.all()

    def list_active_discounts(self, now: datetime = None) -> List[Discount]:
        return self.discounts.find(lambda d: d.is_currently_valid(now))

    def list_auto_apply_discounts(self, now: datetime = None) -> List[Discount]:
        return self.discounts.find(lambda d: d.auto_apply and d.is_currently_valid(now))

    def update_discount(self, discount_id: int, request: DiscountUpdateRequest) -> Discount:
        """Applies the fields that are set on the request; code and type are immutable."""
        fields = {
            "name": "name",
            "description": "description",
            "value": "value",
            "minimumOrderAmount": "minimum_order_amount",
            "maximumDiscountAmount": "maximum_discount_amount",
            "validFrom": "valid_from",
            "validTo": "valid_to",
            "usageLimit": "usage_limit",
            "perCustomerLimit": "per_customer_limit",
            "active": "active",
            "autoApply": "auto_apply",
        }
        changes = {
            target: getattr(request, source)
            for source, target in fields.items()
            if getattr(request, source) is not None
        }
        with self.stores.lock:
            discount = self.discounts.get(discount_id)
            valid_from = changes.get("valid_from", discount.valid_from)
            valid_to = changes.get("valid_to", discount.valid_to)
            if valid_to < valid_from:
                raise ValidationError("validTo must not be before validFrom")
            for name, value in changes.items():
                setattr(discount, name, value)
            discount.updated_at = datetime.now()
        return discount

    def toggle_discount_status(self, discount_id: int) -> Discount:
        with self.stores.lock:
            discount = self.discounts.get(discount_id)
            discount.active = not discount.active
            discount.updated_at = datetime.now()
        log.info(f"[Discount: {discount.code}] Active set to {discount.active}.")
        return discount

    def delete_discount(self, discount_id: int) -> Discount:
        """Soft delete: the discount is deactivated, never removed."""
        with self.stores.lock:
            discount = self.discounts.get(discount_id)
            discount.active = False
            discount.updated_at = datetime.now()
        log.info(f"[Discount: {discount.code}] Deactivated.")
        return discount

    # --- Checkout support ---

    def validate_and_get_discount(self, code: str, order_total: Decimal, now: datetime = None) -> Discount:
        """
        Looks up a code and checks that it can be applied to an order total.

        Args:
            code (str): The discount code, matched case-insensitively.
            order_total (Decimal): The order subtotal.
            now (datetime): Evaluation time, defaults to the current time.

        Returns:
            Discount: The applicable discount.

        Raises:
            NotFoundError: If no discount has this code.
            InvalidDiscountError: If the discount is not currently valid or the
                order total is below its minimum order amount.
        """
        discount = self.get_discount_by_code(code)

        if not discount.is_currently_valid(now):
            raise InvalidDiscountError("Discount code is not valid or has expired")

        if not discount.meets_minimum(order_total):
            raise InvalidDiscountError(
                f"Minimum order amount of {discount.minimum_order_amount} required for this discount"
            )

        return discount

    def calculate_discount(self, code: str, order_total: Decimal, now: datetime = None) -> Decimal:
        """Returns the discount amount for a code, or 0 if the code cannot be applied."""
        try:
            discount = self.validate_and_get_discount(code, order_total, now)
        except (NotFoundError, InvalidDiscountError):
            return ZERO
        return discount.calculate_discount(order_total, now)

    def increment_usage(self, discount_id: int):
        with self.stores.lock:
            self.discounts.get(discount_id).increment_usage()

    def decrement_usage(self, discount_id: int):
        with self.stores.lock:
            discount = self.discounts.get(discount_id)
            discount.usage_count = max(0, discount.usage_count - 1)
