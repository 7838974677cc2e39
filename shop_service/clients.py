"""
clients.py — Carrier Status Listener (RabbitMQ)

This module consumes shipping status updates published by the warehouse or
carrier integration and feeds them into the order status state machine.

Message format (JSON):
    {
        "orderNumber": "ORD-20260101-1A2B3C4D",
        "status": "SHIPPED" | "OUT_FOR_DELIVERY" | "DELIVERED" | "RETURNED",
        "trackingNumber": "...",        # SHIPPED only, optional
        "carrier": "...",               # SHIPPED only, optional
        "estimatedDelivery": "ISO-8601" # SHIPPED only, optional
    }

Valid messages are acknowledged; malformed messages and messages for unknown
orders are rejected without requeue (→ DLQ, if configured).
"""

import json
import logging
import threading
from datetime import datetime

import pika

from . import config
from .entities import OrderStatus
from .errors import ShopError
from .orders import OrderService

log = logging.getLogger(__name__)

CARRIER_STATUSES = (
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.RETURNED,
)
RECONNECT_DELAY_SECONDS = 10


class ShippingStatusListener:
    """
    Background consumer for the shipping status queue.
    Handles connection management and reconnects after connection loss.
    """

    def __init__(self, order_service: OrderService, queue: str = None):
        self.order_service = order_service
        self.queue = queue or config.SHIPPING_STATUS_QUEUE
        self._stop = threading.Event()
        # Guards the connection and channel pair shared with stop().
        self._lock = threading.Lock()
        self._connection = None
        self._channel = None
        self._thread = None

    def apply_update(self, data: dict):
        """
        Applies one status update to its order.

        Args:
            data (dict): The decoded message.

        Raises:
            ValueError: If the message is not an object, lacks fields or carries an unsupported status.
            NotFoundError: If the order number is unknown.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        order_number = data.get("orderNumber")
        if not order_number:
            raise ValueError("orderNumber missing")
        try:
            status = OrderStatus(data.get("status"))
        except ValueError:
            raise ValueError(f"unsupported status {data.get('status')!r}")
        if status not in CARRIER_STATUSES:
            raise ValueError(f"unsupported status {status.value!r}")

        order = self.order_service.get_order_by_number(order_number)
        if status == OrderStatus.SHIPPED and (data.get("trackingNumber") or data.get("carrier")):
            estimated = data.get("estimatedDelivery")
            return self.order_service.update_tracking(
                order.id,
                data.get("trackingNumber"),
                data.get("carrier"),
                datetime.fromisoformat(estimated) if estimated else None,
            )
        return self.order_service.update_order_status(order.id, status)

    def on_message(self, ch, method, properties, body):
        try:
            data = json.loads(body)
            order = self.apply_update(data)
            log.info(f"[SHIPPING-STATUS][Order: {order.order_number}] Status update applied: {order.status.value}.")
            ch.basic_ack(delivery_tag=method.delivery_tag)
        except json.JSONDecodeError:
            log.error(f"[SHIPPING-STATUS] Invalid JSON message received: {body!r}")
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)  # -> DLQ
        except (ValueError, ShopError) as e:
            log.error(f"[SHIPPING-STATUS] Rejected status update {body!r}: {e}")
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)  # -> DLQ

    def _connect(self):
        credentials = pika.PlainCredentials(config.RABBITMQ_USER, config.RABBITMQ_PASSWORD)
        connection = pika.BlockingConnection(
            pika.ConnectionParameters(host=config.RABBITMQ_HOST, credentials=credentials, heartbeat=60)
        )
        channel = connection.channel()
        channel.queue_declare(queue=self.queue, durable=True)
        with self._lock:
            self._connection, self._channel = connection, channel
        return channel

    def run(self):
        """
        Consumes status updates until stop() is called.
        On connection loss or errors, it attempts reconnection after 10 seconds.
        """
        log.info("Shipping status listener starting...")
        while not self._stop.is_set():
            try:
                channel = self._connect()
                channel.basic_consume(queue=self.queue, on_message_callback=self.on_message)
                log.info(f"[SHIPPING-STATUS] Listener active on queue '{self.queue}'.")
                channel.start_consuming()
            except pika.exceptions.AMQPConnectionError:
                log.warning(f"Shipping listener: connection to RabbitMQ lost. Reconnecting in {RECONNECT_DELAY_SECONDS}s...")
            except Exception as e:
                log.error(f"Shipping listener: critical error. {e}. Restarting in {RECONNECT_DELAY_SECONDS}s.")
            finally:
                self._close()
            self._stop.wait(RECONNECT_DELAY_SECONDS)

    def start(self):
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="shipping-status-listener", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        """Stops consuming and waits for the listener thread to exit."""
        self._stop.set()
        with self._lock:
            connection, channel = self._connection, self._channel
        if connection is not None and channel is not None and connection.is_open:
            try:
                connection.add_callback_threadsafe(channel.stop_consuming)
            except pika.exceptions.AMQPError as e:
                log.warning(f"Shipping listener: could not signal consumer to stop. {e}")
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _close(self):
        with self._lock:
            connection = self._connection
            self._connection = None
            self._channel = None
        if connection is not None and connection.is_open:
            connection.close()
