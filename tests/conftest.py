"""Pytest fixtures for shop service tests."""

import itertools
import os
from decimal import Decimal

# Keep test runs from writing a log file into the working directory.
os.environ.setdefault("SHOP_LOG_FILE", "")

import pytest
from fastapi.testclient import TestClient

from shop_service.main import create_app
from shop_service.models import CheckoutRequest, ProductRequest, UserRequest
from shop_service.services import ShopServices


@pytest.fixture
def shop():
    """A fresh in-memory service set with checkout compensation enabled."""
    return ShopServices(compensate=True)


@pytest.fixture
def user(shop):
    return shop.register_user(UserRequest(name="Alice Smith", email="alice@example.com"))


@pytest.fixture
def other_user(shop):
    return shop.register_user(UserRequest(name="Bob Jones", email="bob@example.com"))


@pytest.fixture
def make_product(shop):
    """Factory registering catalog products with unique SKUs."""
    counter = itertools.count(1)

    def _make(price="40.00", stock=10, warranty_months=12, serial_number=None, name=None):
        n = next(counter)
        return shop.register_product(ProductRequest(
            name=name or f"Product {n}",
            sku=f"SKU-{n:03d}",
            price=Decimal(price),
            stockQuantity=stock,
            warrantyPeriodMonths=warranty_months,
            serialNumber=serial_number,
        ))

    return _make


@pytest.fixture
def checkout_request():
    """Factory for checkout requests with a complete shipping snapshot."""

    def _make(**overrides):
        fields = {
            "shippingName": "Alice Smith",
            "shippingAddress": "1 Main Street",
            "shippingCity": "Springfield",
            "shippingState": "IL",
            "shippingZipCode": "62701",
            "shippingCountry": "US",
            "shippingPhone": "+1-555-0100",
            "paymentMethod": "CARD",
        }
        fields.update(overrides)
        return CheckoutRequest(**fields)

    return _make


@pytest.fixture
def place_order(shop, user, make_product, checkout_request):
    """Factory that fills the cart with one product and checks out."""

    def _place(quantity=1, product=None, user_id=None, **overrides):
        product = product or make_product()
        user_id = user_id or user.id
        shop.add_to_cart(user_id, product.id, quantity)
        return shop.orders.create_order(user_id, checkout_request(**overrides))

    return _place


@pytest.fixture
def client(shop):
    """HTTP client bound to the shop fixture's services."""
    return TestClient(create_app(shop))
