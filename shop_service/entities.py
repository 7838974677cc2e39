"""
entities.py — Domain Records for the Shop Service

Records are plain dataclasses stored in the arena stores (see stores.py) and
reference each other only by integer id. Monetary values are Decimal.

Records:
    - Product, User, CartLine: collaborator data consumed by checkout
    - Order, OrderItem: the result of a checkout
    - Discount: a discount code and its calculation rules
    - Warranty: one per purchased line item
    - InventoryItem: service-tracked physical item with two warranty tracks
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional, Set

from . import config

ZERO = Decimal("0")
CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Round a value to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"
    BUY_X_GET_Y = "BUY_X_GET_Y"


class CustomerSegment(str, Enum):
    ALL = "ALL"
    NEW_CUSTOMERS = "NEW_CUSTOMERS"
    RETURNING_CUSTOMERS = "RETURNING_CUSTOMERS"
    VIP_CUSTOMERS = "VIP_CUSTOMERS"


class WarrantyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    # Never assigned: claims update the claim fields and leave the status ACTIVE.
    CLAIMED = "CLAIMED"
    VOIDED = "VOIDED"


class ItemStatus(str, Enum):
    ACTIVE = "ACTIVE"
    UNDER_SERVICE = "UNDER_SERVICE"
    RETURNED = "RETURNED"
    REPLACED = "REPLACED"
    INACTIVE = "INACTIVE"


@dataclass
class Product:
    name: str
    sku: str
    price: Decimal
    stock_quantity: int = 0
    brand: Optional[str] = None
    serial_number: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    category_id: Optional[int] = None
    warranty_period_months: int = 12
    sold_count: int = 0
    active: bool = True
    id: Optional[int] = None


@dataclass
class User:
    name: str
    email: str
    phone: Optional[str] = None
    total_orders: int = 0
    lifetime_spent: Decimal = ZERO
    enabled: bool = True
    id: Optional[int] = None


@dataclass
class CartLine:
    user_id: int
    product_id: int
    quantity: int


@dataclass
class OrderItem:
    """A line item snapshot, decoupled from later product edits."""

    product_id: int
    product_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    product_color: Optional[str] = None
    product_size: Optional[str] = None

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class ShippingInfo:
    name: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str
    phone: str


@dataclass
class Order:
    order_number: str
    user_id: int
    shipping: ShippingInfo
    items: List[OrderItem] = field(default_factory=list)
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    shipping_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    applied_discount_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None

    def calculate_totals(self):
        """Recompute subtotal from the line items and total from the amounts."""
        self.subtotal = sum((item.total_price for item in self.items), ZERO)
        self.total_amount = self.subtotal - self.discount_amount + self.tax_amount + self.shipping_amount


@dataclass
class Discount:
    code: str
    name: str
    type: DiscountType
    value: Decimal
    valid_from: datetime
    valid_to: datetime
    description: Optional[str] = None
    minimum_order_amount: Optional[Decimal] = None
    maximum_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    # Stored but not enforced when a code is applied.
    per_customer_limit: Optional[int] = None
    customer_segment: CustomerSegment = CustomerSegment.ALL
    applicable_product_ids: Set[int] = field(default_factory=set)
    applicable_category_ids: Set[int] = field(default_factory=set)
    active: bool = True
    auto_apply: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None

    def is_currently_valid(self, now: datetime = None) -> bool:
        now = now or datetime.now()
        return (
            self.active
            and self.valid_from <= now <= self.valid_to
            and (self.usage_limit is None or self.usage_count < self.usage_limit)
        )

    def meets_minimum(self, order_total: Decimal) -> bool:
        return self.minimum_order_amount is None or order_total >= self.minimum_order_amount

    def calculate_discount(self, order_total: Decimal, now: datetime = None) -> Decimal:
        """
        Computes the monetary discount for an order total.

        Product and category scoping is not applied: a valid code discounts the
        whole order. FREE_SHIPPING and BUY_X_GET_Y contribute nothing here.

        Returns:
            Decimal: between 0 and order_total; 0 when the discount is not applicable.
        """
        if not self.is_currently_valid(now) or not self.meets_minimum(order_total):
            return ZERO

        if self.type == DiscountType.PERCENTAGE:
            amount = money(order_total * self.value / Decimal(100))
            if self.maximum_discount_amount is not None and amount > self.maximum_discount_amount:
                amount = self.maximum_discount_amount
        elif self.type == DiscountType.FIXED_AMOUNT:
            amount = self.value
        else:
            amount = ZERO

        return max(ZERO, min(amount, order_total))

    def increment_usage(self):
        self.usage_count += 1


@dataclass
class Warranty:
    warranty_number: str
    product_id: int
    user_id: int
    purchase_date: date
    warranty_start_date: date
    warranty_end_date: date
    order_id: Optional[int] = None
    serial_number: Optional[str] = None
    status: WarrantyStatus = WarrantyStatus.ACTIVE
    notes: Optional[str] = None
    claim_filed: bool = False
    last_claim_date: Optional[datetime] = None
    claim_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None

    def is_valid(self, today: date = None) -> bool:
        today = today or date.today()
        return self.status == WarrantyStatus.ACTIVE and today < self.warranty_end_date

    def days_until_expiry(self, today: date = None) -> int:
        """Days until the end date; negative for stale records the sweep has not reached."""
        today = today or date.today()
        return (self.warranty_end_date - today).days

    def is_expiring_soon(self, today: date = None, window_days: int = None) -> bool:
        if window_days is None:
            window_days = config.EXPIRING_SOON_DAYS
        return self.status == WarrantyStatus.ACTIVE and 0 <= self.days_until_expiry(today) <= window_days


@dataclass
class WarrantyTrack:
    """One of the two independent warranty tracks of an inventory item."""

    enabled: bool = False
    period_months: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def fill_dates(self, date_of_purchase: date):
        if not self.enabled or self.period_months is None:
            return
        if self.start_date is None:
            self.start_date = date_of_purchase
        if self.end_date is None:
            self.end_date = add_months(self.start_date, self.period_months)

    def is_valid(self, today: date = None) -> bool:
        if not self.enabled or self.end_date is None:
            return False
        return (today or date.today()) <= self.end_date

    def days_remaining(self, today: date = None) -> int:
        if self.end_date is None:
            return 0
        return max(0, (self.end_date - (today or date.today())).days)


@dataclass
class InventoryItem:
    item_code: str
    name: str
    category: str
    date_of_purchase: date
    product_warranty: WarrantyTrack = field(default_factory=WarrantyTrack)
    motor_warranty: WarrantyTrack = field(default_factory=WarrantyTrack)
    item_details: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    serial_number: Optional[str] = None
    model: Optional[str] = None
    brand: Optional[str] = None
    status: ItemStatus = ItemStatus.ACTIVE
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None

    def has_any_warranty(self) -> bool:
        return self.product_warranty.enabled or self.motor_warranty.enabled

    def has_any_valid_warranty(self, today: date = None) -> bool:
        return self.product_warranty.is_valid(today) or self.motor_warranty.is_valid(today)

    def days_until_warranty_expiry(self, today: date = None) -> int:
        """Minimum days remaining across the enabled tracks, 0 when none is enabled."""
        days = [
            track.days_remaining(today)
            for track in (self.product_warranty, self.motor_warranty)
            if track.enabled
        ]
        return min(days) if days else 0
