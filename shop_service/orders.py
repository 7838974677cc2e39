"""
orders.py — Order Service and Status State Machine

Entry point for everything that happens to an order after the cart: checkout
(delegated to CheckoutWorkflow), cancellation, and the admin-driven status,
payment and tracking updates.

Status flow:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → OUT_FOR_DELIVERY → DELIVERED
    with CANCELLED, RETURNED and REFUNDED as side branches.

Automatic transitions and side effects:
    • payment status PAID      → order status CONFIRMED
    • tracking information set → order status SHIPPED
    • status DELIVERED         → actual delivery timestamp stamped
    • status CANCELLED         → stock restored, warranties voided
Apart from cancellation, any status may be set from any other.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .entities import ZERO, Order, OrderStatus, PaymentStatus
from .errors import InvalidStateError
from .models import CheckoutRequest
from .stores import ShopStores
from .warranties import WarrantyService
from .workflow import CheckoutWorkflow

log = logging.getLogger(__name__)

NON_CANCELLABLE = (OrderStatus.SHIPPED, OrderStatus.DELIVERED)
NOT_COUNTED_AS_SALES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


class OrderService:
    def __init__(self, stores: ShopStores, workflow: CheckoutWorkflow, warranty_service: WarrantyService):
        self.stores = stores
        self.orders = stores.orders
        self.workflow = workflow
        self.warranty_service = warranty_service

    def create_order(self, user_id: int, request: CheckoutRequest) -> Order:
        return self.workflow.run(user_id, request)

    # --- Queries ---

    def get_order(self, order_id: int) -> Order:
        return self.orders.get(order_id)

    def get_order_by_number(self, order_number: str) -> Order:
        return self.orders.get_by_number(order_number)

    def track_order(self, order_number: str) -> Order:
        return self.get_order_by_number(order_number)

    def list_by_user(self, user_id: int) -> List[Order]:
        return self._newest_first(self.orders.find(lambda o: o.user_id == user_id))

    def list_all(self) -> List[Order]:
        return self._newest_first(self.orders.all())

    def list_by_status(self, status: OrderStatus) -> List[Order]:
        return self._newest_first(self.orders.find(lambda o: o.status == status))

    def recent_orders(self, limit: int = 10) -> List[Order]:
        return self.list_all()[:limit]

    def count_by_status(self, status: OrderStatus) -> int:
        return len(self.orders.find(lambda o: o.status == status))

    def total_sales(self) -> Decimal:
        return sum(
            (o.total_amount for o in self.orders.all() if o.status not in NOT_COUNTED_AS_SALES),
            ZERO,
        )

    # --- Transitions ---

    def cancel_order(self, order_id: int) -> Order:
        """
        Cancels an order, restoring stock and voiding its warranties.

        Sold counts and the customer's statistics are left unchanged.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidStateError: If the order is SHIPPED, DELIVERED or already CANCELLED.
        """
        with self.stores.lock:
            order = self.orders.get(order_id)
            log_prefix = f"[Order: {order.order_number}]"

            if order.status in NON_CANCELLABLE:
                log.warning(f"{log_prefix} Cancellation rejected: order is {order.status.value}.")
                raise InvalidStateError("Cannot cancel shipped or delivered orders")
            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateError("Order is already cancelled")

            for item in order.items:
                self.stores.catalog.increment_stock(item.product_id, item.quantity)

            self._set_status(order, OrderStatus.CANCELLED)
            voided = self.warranty_service.void_warranties_by_order(order.id)

        log.info(f"{log_prefix} Cancelled: stock restored for {len(order.items)} items, {len(voided)} warranties voided.")
        return order

    def update_order_status(self, order_id: int, status: OrderStatus) -> Order:
        """Sets the status; CANCELLED goes through cancel_order, DELIVERED stamps the delivery time."""
        if status == OrderStatus.CANCELLED:
            return self.cancel_order(order_id)

        with self.stores.lock:
            order = self.orders.get(order_id)
            previous = order.status
            self._set_status(order, status)
            if status == OrderStatus.DELIVERED:
                order.actual_delivery = order.updated_at
        log.info(f"[Order: {order.order_number}] Status {previous.value} -> {status.value}.")
        return order

    def update_payment_status(self, order_id: int, status: PaymentStatus,
                              transaction_id: Optional[str] = None) -> Order:
        with self.stores.lock:
            order = self.orders.get(order_id)
            order.payment_status = status
            order.payment_transaction_id = transaction_id
            if status == PaymentStatus.PAID:
                self._set_status(order, OrderStatus.CONFIRMED)
            else:
                order.updated_at = datetime.now()
        log.info(f"[Order: {order.order_number}] Payment {status.value} (TxID: {transaction_id}).")
        return order

    def update_tracking(self, order_id: int, tracking_number: Optional[str], carrier: Optional[str],
                        estimated_delivery: Optional[datetime] = None) -> Order:
        with self.stores.lock:
            order = self.orders.get(order_id)
            order.tracking_number = tracking_number
            order.carrier = carrier
            order.estimated_delivery = estimated_delivery
            self._set_status(order, OrderStatus.SHIPPED)
        log.info(f"[Order: {order.order_number}] Shipped with {carrier} ({tracking_number}).")
        return order

    @staticmethod
    def _set_status(order: Order, status: OrderStatus):
        order.status = status
        order.updated_at = datetime.now()

    @staticmethod
    def _newest_first(orders: List[Order]) -> List[Order]:
        return sorted(orders, key=lambda o: (o.created_at, o.id), reverse=True)
