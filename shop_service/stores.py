"""
stores.py — In-Memory Arena Stores

Each store keeps its records in a dict keyed by an integer id assigned on
insert, plus lookup tables for its unique keys. Records reference each other
only by id. All stores of one ShopStores bundle share a single re-entrant lock,
so a service can hold it across a multi-store operation.

Stores:
    - CatalogStore: products, stock and sold counts
    - CartStore: per-user line items
    - UserStore: customers and their running statistics
    - OrderStore, DiscountStore, WarrantyStore, InventoryStore
"""

import itertools
import threading
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from .entities import CartLine, Discount, InventoryItem, Order, Product, User, Warranty
from .errors import DuplicateError, InsufficientStockError, NotFoundError


class _Arena:
    """Id-keyed record storage shared by all stores."""

    entity_name = "Record"

    def __init__(self, lock=None):
        self.lock = lock or threading.RLock()
        self._records: Dict[int, object] = {}
        self._ids = itertools.count(1)

    def _insert(self, record):
        record.id = next(self._ids)
        self._records[record.id] = record
        return record

    def get(self, record_id: int):
        with self.lock:
            record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(self.entity_name, "id", record_id)
        return record

    def lookup(self, record_id: Optional[int]):
        """Returns the record or None, for optional references."""
        if record_id is None:
            return None
        with self.lock:
            return self._records.get(record_id)

    def all(self) -> list:
        with self.lock:
            return list(self._records.values())

    def find(self, predicate: Callable) -> list:
        with self.lock:
            return [record for record in self._records.values() if predicate(record)]

    def count(self) -> int:
        with self.lock:
            return len(self._records)


class CatalogStore(_Arena):
    entity_name = "Product"

    def __init__(self, lock=None):
        super().__init__(lock)
        self._by_sku: Dict[str, int] = {}

    def add_product(self, product: Product) -> Product:
        with self.lock:
            if product.sku in self._by_sku:
                raise DuplicateError("Product", "sku", product.sku)
            self._insert(product)
            self._by_sku[product.sku] = product.id
            return product

    def get_product(self, product_id: int) -> Product:
        return self.get(product_id)

    def decrement_stock(self, product_id: int, quantity: int):
        with self.lock:
            product = self.get(product_id)
            if product.stock_quantity < quantity:
                raise InsufficientStockError(product.name, product.stock_quantity, quantity)
            product.stock_quantity -= quantity

    def increment_stock(self, product_id: int, quantity: int):
        with self.lock:
            self.get(product_id).stock_quantity += quantity

    def increment_sold_count(self, product_id: int, quantity: int):
        with self.lock:
            self.get(product_id).sold_count += quantity

    def decrement_sold_count(self, product_id: int, quantity: int):
        with self.lock:
            product = self.get(product_id)
            product.sold_count = max(0, product.sold_count - quantity)


class CartStore:
    def __init__(self, lock=None):
        self.lock = lock or threading.RLock()
        self._lines: Dict[int, List[CartLine]] = {}

    def get_cart_items(self, user_id: int) -> List[CartLine]:
        with self.lock:
            return [replace(line) for line in self._lines.get(user_id, [])]

    def add_item(self, user_id: int, product_id: int, quantity: int) -> CartLine:
        """Adds a product to the cart, merging with an existing line for the same product."""
        with self.lock:
            lines = self._lines.setdefault(user_id, [])
            for line in lines:
                if line.product_id == product_id:
                    line.quantity += quantity
                    return replace(line)
            line = CartLine(user_id=user_id, product_id=product_id, quantity=quantity)
            lines.append(line)
            return replace(line)

    def quantity_of(self, user_id: int, product_id: int) -> int:
        with self.lock:
            return sum(line.quantity for line in self._lines.get(user_id, []) if line.product_id == product_id)

    def clear_cart(self, user_id: int) -> List[CartLine]:
        """Empties the cart and returns the removed lines."""
        with self.lock:
            return self._lines.pop(user_id, [])

    def restore(self, user_id: int, lines: List[CartLine]):
        with self.lock:
            self._lines[user_id] = list(lines)


class UserStore(_Arena):
    entity_name = "User"

    def __init__(self, lock=None):
        super().__init__(lock)
        self._by_email: Dict[str, int] = {}

    def add_user(self, user: User) -> User:
        with self.lock:
            email = user.email.lower()
            if email in self._by_email:
                raise DuplicateError("User", "email", user.email)
            self._insert(user)
            self._by_email[email] = user.id
            return user

    def get_user(self, user_id: int) -> User:
        return self.get(user_id)

    def update_stats(self, user_id: int, order_total: Decimal):
        with self.lock:
            user = self.get(user_id)
            user.total_orders += 1
            user.lifetime_spent += order_total

    def revert_stats(self, user_id: int, order_total: Decimal):
        with self.lock:
            user = self.get(user_id)
            user.total_orders -= 1
            user.lifetime_spent -= order_total


class OrderStore(_Arena):
    entity_name = "Order"

    def __init__(self, lock=None):
        super().__init__(lock)
        self._by_number: Dict[str, int] = {}

    def add(self, order: Order) -> Order:
        with self.lock:
            if order.order_number in self._by_number:
                raise DuplicateError("Order", "orderNumber", order.order_number)
            self._insert(order)
            self._by_number[order.order_number] = order.id
            return order

    def discard(self, order_id: int):
        """Drops an order that never completed checkout."""
        with self.lock:
            order = self._records.pop(order_id, None)
            if order is not None:
                self._by_number.pop(order.order_number, None)

    def number_exists(self, order_number: str) -> bool:
        with self.lock:
            return order_number in self._by_number

    def get_by_number(self, order_number: str) -> Order:
        with self.lock:
            order_id = self._by_number.get(order_number)
        if order_id is None:
            raise NotFoundError("Order", "orderNumber", order_number)
        return self.get(order_id)


class DiscountStore(_Arena):
    entity_name = "Discount"

    def __init__(self, lock=None):
        super().__init__(lock)
        self._by_code: Dict[str, int] = {}

    def add(self, discount: Discount) -> Discount:
        with self.lock:
            if discount.code in self._by_code:
                raise DuplicateError("Discount", "code", discount.code)
            self._insert(discount)
            self._by_code[discount.code] = discount.id
            return discount

    def code_exists(self, code: str) -> bool:
        with self.lock:
            return code.upper() in self._by_code

    def find_by_code(self, code: str) -> Optional[Discount]:
        with self.lock:
            discount_id = self._by_code.get(code.upper())
            return self._records.get(discount_id) if discount_id is not None else None


class WarrantyStore(_Arena):
    entity_name = "Warranty"

    def __init__(self, lock=None):
        super().__init__(lock)
        self._by_number: Dict[str, int] = {}

    def add(self, warranty: Warranty) -> Warranty:
        with self.lock:
            if warranty.warranty_number in self._by_number:
                raise DuplicateError("Warranty", "warrantyNumber", warranty.warranty_number)
            self._insert(warranty)
            self._by_number[warranty.warranty_number] = warranty.id
            return warranty

    def discard(self, warranty_id: int):
        with self.lock:
            warranty = self._records.pop(warranty_id, None)
            if warranty is not None:
                self._by_number.pop(warranty.warranty_number, None)

    def number_exists(self, warranty_number: str) -> bool:
        with self.lock:
            return warranty_number in self._by_number

    def get_by_number(self, warranty_number: str) -> Warranty:
        with self.lock:
            warranty_id = self._by_number.get(warranty_number)
        if warranty_id is None:
            raise NotFoundError("Warranty", "warrantyNumber", warranty_number)
        return self.get(warranty_id)


class InventoryStore(_Arena):
    entity_name = "InventoryItem"

    def __init__(self, lock=None):
        super().__init__(lock)
        self._by_code: Dict[str, int] = {}

    def add(self, item: InventoryItem) -> InventoryItem:
        with self.lock:
            if item.item_code in self._by_code:
                raise DuplicateError("InventoryItem", "itemId", item.item_code)
            self._insert(item)
            self._by_code[item.item_code] = item.id
            return item

    def code_exists(self, item_code: str) -> bool:
        with self.lock:
            return item_code in self._by_code

    def get_by_code(self, item_code: str) -> InventoryItem:
        with self.lock:
            item_id = self._by_code.get(item_code)
        if item_id is None:
            raise NotFoundError("InventoryItem", "itemId", item_code)
        return self.get(item_id)

    def delete(self, item_id: int):
        with self.lock:
            item = self.get(item_id)
            del self._records[item_id]
            self._by_code.pop(item.item_code, None)


@dataclass
class ShopStores:
    """All stores of one process, sharing one lock."""

    lock: threading.RLock = field(default_factory=threading.RLock)
    catalog: CatalogStore = None
    carts: CartStore = None
    users: UserStore = None
    orders: OrderStore = None
    discounts: DiscountStore = None
    warranties: WarrantyStore = None
    inventory: InventoryStore = None

    def __post_init__(self):
        self.catalog = self.catalog or CatalogStore(self.lock)
        self.carts = self.carts or CartStore(self.lock)
        self.users = self.users or UserStore(self.lock)
        self.orders = self.orders or OrderStore(self.lock)
        self.discounts = self.discounts or DiscountStore(self.lock)
        self.warranties = self.warranties or WarrantyStore(self.lock)
        self.inventory = self.inventory or InventoryStore(self.lock)
