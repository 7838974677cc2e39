"""
mock_carrier.py — Mock Carrier Publishing Shipping Status Updates

This module simulates a carrier integration that publishes status updates for
an order to the shop service's shipping status queue (RabbitMQ).

Purpose:
    • Exercise the shipping status listener end to end without a real carrier
    • Provide realistic timing and message patterns for manual tests

Output Queue: SHIPPING_STATUS_QUEUE (default 'shipping.status.updates')

Usage:
    python -m mock_services.mock_carrier ORD-20260101-1A2B3C4D
"""

import json
import logging
import os
import sys
import time
import uuid
from datetime import datetime, timedelta

import pika

logging.basicConfig(level=logging.INFO)
RABBITMQ_HOST = os.environ.get("RABBITMQ_HOST", "localhost")
RABBITMQ_USER = os.environ.get("RABBITMQ_USER", "shop")
RABBITMQ_PASSWORD = os.environ.get("RABBITMQ_PASSWORD", "shop")
SHIPPING_STATUS_QUEUE = os.environ.get("SHIPPING_STATUS_QUEUE", "shipping.status.updates")


def get_mq_connection():
    """
    Establishes and returns a connection to the RabbitMQ message broker.

    Returns:
        pika.BlockingConnection: Active connection to the RabbitMQ broker.

    Raises:
        pika.exceptions.AMQPConnectionError: If the broker is unavailable.
    """
    credentials = pika.PlainCredentials(RABBITMQ_USER, RABBITMQ_PASSWORD)
    return pika.BlockingConnection(
        pika.ConnectionParameters(host=RABBITMQ_HOST, credentials=credentials)
    )


def build_status_updates(order_number: str, carrier: str = "MockExpress") -> list:
    """
    Builds the sequence of messages a carrier sends for one parcel:
    SHIPPED (with tracking data), OUT_FOR_DELIVERY, DELIVERED.
    """
    tracking_number = "TRK" + uuid.uuid4().hex[:10].upper()
    estimated = (datetime.now() + timedelta(days=3)).replace(microsecond=0)
    return [
        {
            "orderNumber": order_number,
            "status": "SHIPPED",
            "trackingNumber": tracking_number,
            "carrier": carrier,
            "estimatedDelivery": estimated.isoformat(),
        },
        {"orderNumber": order_number, "status": "OUT_FOR_DELIVERY"},
        {"orderNumber": order_number, "status": "DELIVERED"},
    ]


def send_status_updates(order_number: str, delay_seconds: float = 3.0):
    """
    Publishes the carrier lifecycle for an order, pausing between stages
    to mimic real transit times.
    """
    connection = get_mq_connection()
    try:
        channel = connection.channel()
        channel.queue_declare(queue=SHIPPING_STATUS_QUEUE, durable=True)
        for message in build_status_updates(order_number):
            channel.basic_publish(
                exchange='',
                routing_key=SHIPPING_STATUS_QUEUE,
                body=json.dumps(message),
                properties=pika.BasicProperties(delivery_mode=2)  # persistent message
            )
            logging.info(f"[CARRIER] Status sent: {message['status']} for {order_number}")
            time.sleep(delay_seconds)
    finally:
        connection.close()


if __name__ == '__main__':
    if len(sys.argv) != 2:
        sys.exit("usage: python -m mock_services.mock_carrier <order-number>")
    send_status_updates(sys.argv[1])
