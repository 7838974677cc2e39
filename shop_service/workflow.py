"""
workflow.py — Checkout Orchestration

This module contains the workflow that turns a customer's cart into an order.
It coordinates all affected stores and services in the correct sequence.

Workflow Overview:
1. Read the cart, validate and reserve stock, snapshot each line into an order item
2. Apply the discount code, if any (an unusable code is ignored)
3. Compute shipping, tax and total
4. Persist the order
5. Update the customer's running statistics
6. Clear the cart
7. Issue one warranty per order item
8. Handle errors with compensation steps (Saga Pattern)
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Callable, List, Tuple

from . import config
from .discounts import DiscountService
from .entities import ZERO, Order, OrderItem, ShippingInfo, money
from .errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidDiscountError,
    NotFoundError,
    ValidationError,
)
from .models import CheckoutRequest
from .stores import ShopStores
from .warranties import WarrantyService

log = logging.getLogger(__name__)


def calculate_shipping(subtotal: Decimal) -> Decimal:
    """Free shipping from the configured threshold up, a flat fee below it."""
    if subtotal >= config.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return config.FLAT_SHIPPING_FEE


def calculate_tax(subtotal: Decimal) -> Decimal:
    return money(subtotal * config.TAX_RATE)


class CompensationLog:
    """
    Undo actions for the steps a checkout has already applied.

    Actions run in reverse registration order. A failing action is logged
    and does not stop the remaining ones.
    """

    def __init__(self, log_prefix: str):
        self.log_prefix = log_prefix
        self._actions: List[Tuple[str, Callable[[], None]]] = []

    def __len__(self):
        return len(self._actions)

    def register(self, description: str, action: Callable[[], None]):
        self._actions.append((description, action))

    def run(self) -> int:
        """Executes all registered undo actions and returns how many failed."""
        failures = 0
        while self._actions:
            description, action = self._actions.pop()
            try:
                action()
                log.info(f"{self.log_prefix} Compensation: {description}.")
            except Exception as e:
                failures += 1
                log.critical(f"{self.log_prefix} COMPENSATION FAILED ({description}): {e}. MANUAL ACTION REQUIRED!")
        return failures


class CheckoutWorkflow:
    """
    Converts a user's cart into an order.

    The whole checkout runs under the stores' lock, so concurrent checkouts in
    this process cannot both pass the stock check for the last unit.
    """

    def __init__(self, stores: ShopStores, discount_service: DiscountService,
                 warranty_service: WarrantyService, compensate: bool = None):
        self.stores = stores
        self.discount_service = discount_service
        self.warranty_service = warranty_service
        self.compensate = config.CHECKOUT_COMPENSATION if compensate is None else compensate

    def generate_order_number(self, today: date = None) -> str:
        today = today or date.today()
        while True:
            number = f"ORD-{today.strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"
            if not self.stores.orders.number_exists(number):
                return number

    def run(self, user_id: int, request: CheckoutRequest) -> Order:
        """
        Executes the complete checkout for one user.

        Args:
            user_id (int): The customer checking out.
            request (CheckoutRequest): Shipping snapshot, payment method, discount code and notes.

        Returns:
            Order: The persisted PENDING order with items, totals and warranties issued.

        Raises:
            NotFoundError: If the user or a product in the cart does not exist.
            EmptyCartError: If the cart has no items.
            ValidationError: If a cart line has a non-positive quantity.
            InsufficientStockError: If a product has fewer units than requested.

        Compensation (Saga Pattern):
            - Every applied step registers an undo action.
            - If a later step fails, the undo actions run in reverse order and
              the original error is re-raised.
            - With compensation disabled, applied steps stay applied.
        """
        stores = self.stores

        with stores.lock:
            stores.users.get_user(user_id)
            cart_items = stores.carts.get_cart_items(user_id)
            if not cart_items:
                log.warning(f"[User: {user_id}] Checkout rejected: cart is empty.")
                raise EmptyCartError(user_id)

            order = Order(
                order_number=self.generate_order_number(),
                user_id=user_id,
                shipping=ShippingInfo(
                    name=request.shippingName,
                    address=request.shippingAddress,
                    city=request.shippingCity,
                    state=request.shippingState,
                    zip_code=request.shippingZipCode,
                    country=request.shippingCountry,
                    phone=request.shippingPhone,
                ),
                payment_method=request.paymentMethod,
                notes=request.notes,
            )
            log_prefix = f"[Order: {order.order_number}]"
            log.info(f"{log_prefix} Starting checkout for user {user_id} ({len(cart_items)} cart lines).")
            compensation = CompensationLog(log_prefix)

            try:
                # --- 1. Stock validation and reservation ---
                for line in cart_items:
                    product = stores.catalog.get_product(line.product_id)
                    if line.quantity <= 0:
                        raise ValidationError(f"Quantity for {product.name} must be positive")
                    if product.stock_quantity < line.quantity:
                        log.warning(
                            f"{log_prefix} Insufficient stock for {product.sku}: "
                            f"{product.stock_quantity} available, {line.quantity} requested."
                        )
                        raise InsufficientStockError(product.name, product.stock_quantity, line.quantity)

                    order.items.append(OrderItem(
                        product_id=product.id,
                        product_name=product.name,
                        product_sku=product.sku,
                        product_color=product.color,
                        product_size=product.size,
                        quantity=line.quantity,
                        unit_price=product.price,
                    ))

                    stores.catalog.decrement_stock(product.id, line.quantity)
                    compensation.register(
                        f"restock {line.quantity} x {product.sku}",
                        lambda pid=product.id, qty=line.quantity: stores.catalog.increment_stock(pid, qty),
                    )
                    stores.catalog.increment_sold_count(product.id, line.quantity)
                    compensation.register(
                        f"revert sold count of {product.sku}",
                        lambda pid=product.id, qty=line.quantity: stores.catalog.decrement_sold_count(pid, qty),
                    )

                order.calculate_totals()

                # --- 2. Discount ---
                order.discount_amount = self._apply_discount(order, request.discountCode, compensation)

                # --- 3. Amounts ---
                order.tax_amount = calculate_tax(order.subtotal)
                order.shipping_amount = calculate_shipping(order.subtotal)
                order.calculate_totals()

                # --- 4. Persist ---
                stores.orders.add(order)
                compensation.register("discard order", lambda: stores.orders.discard(order.id))

                # --- 5. Customer statistics ---
                stores.users.update_stats(user_id, order.total_amount)
                compensation.register(
                    "revert customer statistics",
                    lambda: stores.users.revert_stats(user_id, order.total_amount),
                )

                # --- 6. Cart ---
                removed = stores.carts.clear_cart(user_id)
                compensation.register("restore cart", lambda: stores.carts.restore(user_id, removed))

                # --- 7. Warranties ---
                for item in order.items:
                    product = stores.catalog.get_product(item.product_id)
                    warranty = self.warranty_service.issue_warranty(order, item, product)
                    compensation.register(
                        f"discard warranty {warranty.warranty_number}",
                        lambda wid=warranty.id: stores.warranties.discard(wid),
                    )

            except Exception as e:
                if self.compensate:
                    log.warning(f"{log_prefix} Checkout failed ({e}). Starting compensation of {len(compensation)} steps.")
                    compensation.run()
                elif len(compensation):
                    log.error(
                        f"{log_prefix} Checkout failed ({e}). Compensation disabled: "
                        f"{len(compensation)} applied steps remain in place."
                    )
                raise

        log.info(
            f"{log_prefix} Order created: subtotal {order.subtotal}, discount {order.discount_amount}, "
            f"shipping {order.shipping_amount}, total {order.total_amount}."
        )
        return order

    def _apply_discount(self, order: Order, code: str, compensation: CompensationLog) -> Decimal:
        """Validates and applies a code; an unusable code yields no discount instead of an error."""
        if not code or not code.strip():
            return ZERO

        try:
            discount = self.discount_service.validate_and_get_discount(code.strip(), order.subtotal)
        except (NotFoundError, InvalidDiscountError) as e:
            log.warning(f"[Order: {order.order_number}] Discount code '{code}' not applied: {e}")
            return ZERO

        amount = discount.calculate_discount(order.subtotal)
        order.applied_discount_id = discount.id
        self.discount_service.increment_usage(discount.id)
        compensation.register(
            f"revert usage of discount {discount.code}",
            lambda: self.discount_service.decrement_usage(discount.id),
        )
        log.info(f"[Order: {order.order_number}] Discount {discount.code} applied: -{amount}.")
        return amount
