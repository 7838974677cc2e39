"""Tests for order queries and the order status state machine."""

from datetime import datetime

import pytest

from shop_service.entities import OrderStatus, PaymentStatus, WarrantyStatus
from shop_service.errors import InvalidStateError, NotFoundError


class TestOrderQueries:
    def test_get_by_number(self, shop, place_order):
        order = place_order()

        assert shop.orders.get_order_by_number(order.order_number) is order
        assert shop.orders.track_order(order.order_number) is order

    def test_unknown_number(self, shop):
        with pytest.raises(NotFoundError):
            shop.orders.get_order_by_number("ORD-20260101-00000000")

    def test_unknown_id(self, shop):
        with pytest.raises(NotFoundError):
            shop.orders.get_order(999)

    def test_list_by_user_newest_first(self, shop, user, other_user, place_order):
        first = place_order()
        second = place_order()
        place_order(user_id=other_user.id)

        assert shop.orders.list_by_user(user.id) == [second, first]

    def test_recent_orders_limit(self, shop, place_order):
        orders = [place_order() for _ in range(3)]

        assert shop.orders.recent_orders(limit=2) == [orders[2], orders[1]]

    def test_total_sales_excludes_cancelled_and_refunded(self, shop, place_order):
        kept = place_order()
        cancelled = place_order()
        refunded = place_order()
        shop.orders.cancel_order(cancelled.id)
        shop.orders.update_order_status(refunded.id, OrderStatus.REFUNDED)

        assert shop.orders.total_sales() == kept.total_amount

    def test_count_by_status(self, shop, place_order):
        place_order()
        shipped = place_order()
        shop.orders.update_order_status(shipped.id, OrderStatus.SHIPPED)

        assert shop.orders.count_by_status(OrderStatus.PENDING) == 1
        assert shop.orders.count_by_status(OrderStatus.SHIPPED) == 1
        assert shop.orders.list_by_status(OrderStatus.SHIPPED) == [shipped]


class TestCancellation:
    def test_cancel_pending_restores_stock_and_voids_warranties(self, shop, user, make_product, place_order):
        product = make_product(stock=10)
        order = place_order(quantity=3, product=product)
        spent = user.lifetime_spent

        cancelled = shop.orders.cancel_order(order.id)

        assert cancelled.status == OrderStatus.CANCELLED
        assert product.stock_quantity == 10
        assert all(w.status == WarrantyStatus.VOIDED for w in shop.warranties.list_by_order(order.id))
        # Sold count and customer statistics are not reversed.
        assert product.sold_count == 3
        assert user.total_orders == 1
        assert user.lifetime_spent == spent

    def test_cancel_confirmed_order(self, shop, place_order):
        order = place_order()
        shop.orders.update_payment_status(order.id, PaymentStatus.PAID, "TX-1")

        assert shop.orders.cancel_order(order.id).status == OrderStatus.CANCELLED

    @pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.DELIVERED])
    def test_cannot_cancel_after_shipping(self, shop, make_product, place_order, status):
        product = make_product(stock=10)
        order = place_order(quantity=2, product=product)
        shop.orders.update_order_status(order.id, status)

        with pytest.raises(InvalidStateError, match="Cannot cancel shipped or delivered orders"):
            shop.orders.cancel_order(order.id)

        assert order.status == status
        assert product.stock_quantity == 8
        assert all(w.status == WarrantyStatus.ACTIVE for w in shop.warranties.list_by_order(order.id))

    def test_cannot_cancel_twice(self, shop, make_product, place_order):
        product = make_product(stock=10)
        order = place_order(quantity=2, product=product)
        shop.orders.cancel_order(order.id)

        with pytest.raises(InvalidStateError):
            shop.orders.cancel_order(order.id)

        assert product.stock_quantity == 10

    def test_status_update_to_cancelled_runs_cancellation(self, shop, make_product, place_order):
        product = make_product(stock=10)
        order = place_order(quantity=4, product=product)

        shop.orders.update_order_status(order.id, OrderStatus.CANCELLED)

        assert order.status == OrderStatus.CANCELLED
        assert product.stock_quantity == 10


class TestStatusTransitions:
    def test_paid_confirms_order(self, shop, place_order):
        order = place_order()

        updated = shop.orders.update_payment_status(order.id, PaymentStatus.PAID, "TX-12345")

        assert updated.payment_status == PaymentStatus.PAID
        assert updated.payment_transaction_id == "TX-12345"
        assert updated.status == OrderStatus.CONFIRMED

    def test_failed_payment_keeps_status(self, shop, place_order):
        order = place_order()

        shop.orders.update_payment_status(order.id, PaymentStatus.FAILED)

        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.PENDING

    def test_tracking_ships_order(self, shop, place_order):
        order = place_order()
        eta = datetime(2026, 11, 2, 12, 0)

        shop.orders.update_tracking(order.id, "TRK123", "UPS", eta)

        assert order.status == OrderStatus.SHIPPED
        assert order.tracking_number == "TRK123"
        assert order.carrier == "UPS"
        assert order.estimated_delivery == eta

    def test_delivered_stamps_delivery_time(self, shop, place_order):
        order = place_order()
        assert order.actual_delivery is None

        shop.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        assert order.status == OrderStatus.DELIVERED
        assert order.actual_delivery is not None

    def test_any_status_reachable(self, shop, place_order):
        order = place_order()
        shop.orders.update_order_status(order.id, OrderStatus.DELIVERED)

        shop.orders.update_order_status(order.id, OrderStatus.PROCESSING)

        assert order.status == OrderStatus.PROCESSING

    def test_updates_touch_timestamp(self, shop, place_order):
        order = place_order()
        before = order.updated_at

        shop.orders.update_order_status(order.id, OrderStatus.PROCESSING)

        assert order.updated_at >= before
