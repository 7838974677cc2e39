"""
config.py — Runtime Settings for the Shop Service

All settings are read once from environment variables at import time, with
defaults suitable for local development.

Groups:
    • Pricing: shipping threshold, flat shipping fee, tax rate
    • Warranty: "expiring soon" window, daily expiry sweep hour
    • Checkout: compensation (rollback) of partially applied checkouts
    • Messaging: RabbitMQ connection for carrier status updates
    • Logging: log file and level
"""

import os
from decimal import Decimal


def _flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Pricing
FREE_SHIPPING_THRESHOLD = Decimal(os.environ.get("SHOP_FREE_SHIPPING_THRESHOLD", "100"))
FLAT_SHIPPING_FEE = Decimal(os.environ.get("SHOP_FLAT_SHIPPING_FEE", "9.99"))
TAX_RATE = Decimal(os.environ.get("SHOP_TAX_RATE", "0"))

# Warranty lifecycle
EXPIRING_SOON_DAYS = int(os.environ.get("SHOP_EXPIRING_SOON_DAYS", "30"))
SWEEP_HOUR = int(os.environ.get("SHOP_SWEEP_HOUR", "1"))
SWEEP_ENABLED = _flag("SHOP_SWEEP_ENABLED", True)

# Checkout
CHECKOUT_COMPENSATION = _flag("SHOP_CHECKOUT_COMPENSATION", True)

# Carrier status updates (RabbitMQ)
RABBITMQ_HOST = os.environ.get("RABBITMQ_HOST", "localhost")
RABBITMQ_USER = os.environ.get("RABBITMQ_USER", "shop")
RABBITMQ_PASSWORD = os.environ.get("RABBITMQ_PASSWORD", "shop")
SHIPPING_STATUS_QUEUE = os.environ.get("SHIPPING_STATUS_QUEUE", "shipping.status.updates")
SHIPPING_LISTENER_ENABLED = _flag("SHIPPING_LISTENER_ENABLED", False)

# Logging
LOG_FILE = os.environ.get("SHOP_LOG_FILE", "shop_service.log")
LOG_LEVEL = os.environ.get("SHOP_LOG_LEVEL", "INFO")
