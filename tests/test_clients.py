"""Tests for the shipping status listener's message handling."""

import json
from datetime import datetime
from types import SimpleNamespace

import pika
import pytest

from mock_services.mock_carrier import build_status_updates
from shop_service.entities import OrderStatus
from shop_service.errors import NotFoundError


class FakeChannel:
    """Records acknowledgements instead of talking to a broker."""

    def __init__(self):
        self.acked = []
        self.nacked = []

    def basic_ack(self, delivery_tag):
        self.acked.append(delivery_tag)

    def basic_nack(self, delivery_tag, requeue=True):
        self.nacked.append((delivery_tag, requeue))


@pytest.fixture
def order(place_order):
    return place_order()


@pytest.fixture
def deliver(shop):
    """Feeds one message body to the listener and returns the channel."""

    def _deliver(body, delivery_tag=1):
        channel = FakeChannel()
        if not isinstance(body, (str, bytes)):
            body = json.dumps(body)
        shop.listener.on_message(channel, SimpleNamespace(delivery_tag=delivery_tag), None, body)
        return channel

    return _deliver


class TestApplyUpdate:
    def test_shipped_with_tracking(self, shop, order):
        shop.listener.apply_update({
            "orderNumber": order.order_number,
            "status": "SHIPPED",
            "trackingNumber": "TRK-1",
            "carrier": "DHL",
            "estimatedDelivery": "2026-11-02T12:00:00",
        })

        assert order.status == OrderStatus.SHIPPED
        assert order.tracking_number == "TRK-1"
        assert order.carrier == "DHL"
        assert order.estimated_delivery == datetime(2026, 11, 2, 12, 0)

    def test_shipped_without_tracking_only_sets_status(self, shop, order):
        shop.listener.apply_update({"orderNumber": order.order_number, "status": "SHIPPED"})

        assert order.status == OrderStatus.SHIPPED
        assert order.tracking_number is None

    def test_delivered(self, shop, order):
        shop.listener.apply_update({"orderNumber": order.order_number, "status": "DELIVERED"})

        assert order.status == OrderStatus.DELIVERED
        assert order.actual_delivery is not None

    def test_missing_order_number(self, shop):
        with pytest.raises(ValueError):
            shop.listener.apply_update({"status": "SHIPPED"})

    def test_unsupported_status(self, shop, order):
        with pytest.raises(ValueError):
            shop.listener.apply_update({"orderNumber": order.order_number, "status": "CANCELLED"})

        assert order.status == OrderStatus.PENDING

    def test_unknown_order(self, shop):
        with pytest.raises(NotFoundError):
            shop.listener.apply_update({"orderNumber": "ORD-20260101-FFFFFFFF", "status": "DELIVERED"})

    def test_carrier_lifecycle(self, shop, order):
        for message in build_status_updates(order.order_number, carrier="MockExpress"):
            shop.listener.apply_update(message)

        assert order.status == OrderStatus.DELIVERED
        assert order.carrier == "MockExpress"
        assert order.tracking_number.startswith("TRK")


class TestOnMessage:
    def test_valid_message_is_acked(self, deliver, order):
        channel = deliver({"orderNumber": order.order_number, "status": "OUT_FOR_DELIVERY"}, delivery_tag=7)

        assert channel.acked == [7]
        assert channel.nacked == []
        assert order.status == OrderStatus.OUT_FOR_DELIVERY

    def test_invalid_json_is_rejected(self, deliver):
        channel = deliver(b"{not json", delivery_tag=3)

        assert channel.acked == []
        assert channel.nacked == [(3, False)]

    def test_unknown_order_is_rejected(self, deliver):
        channel = deliver({"orderNumber": "ORD-20260101-FFFFFFFF", "status": "SHIPPED"})

        assert channel.nacked == [(1, False)]

    def test_unsupported_status_is_rejected(self, deliver, order):
        channel = deliver({"orderNumber": order.order_number, "status": "LOST"})

        assert channel.nacked == [(1, False)]
        assert order.status == OrderStatus.PENDING

    @pytest.mark.parametrize("body", [b'["x"]', b'"SHIPPED"', b"1", b"null"])
    def test_non_object_json_is_rejected(self, deliver, body):
        channel = deliver(body, delivery_tag=4)

        assert channel.acked == []
        assert channel.nacked == [(4, False)]


class FakeConnection:
    def __init__(self):
        self.is_open = True
        self.callbacks = []

    def add_callback_threadsafe(self, callback):
        self.callbacks.append(callback)


class FakeConsumingChannel:
    def stop_consuming(self):
        pass


class TestListenerLifecycle:
    def test_stop_signals_captured_channel(self, shop):
        listener = shop.listener
        connection, channel = FakeConnection(), FakeConsumingChannel()
        listener._connection, listener._channel = connection, channel

        listener.stop()

        assert connection.callbacks == [channel.stop_consuming]

    def test_stop_joins_thread(self, shop, monkeypatch):
        listener = shop.listener

        def unreachable():
            raise pika.exceptions.AMQPConnectionError("broker down")

        monkeypatch.setattr(listener, "_connect", unreachable)
        listener.start()
        thread = listener._thread

        listener.stop()

        assert not thread.is_alive()
        assert listener._thread is None
