"""
models.py — Request and Response Models for the Shop API

This module defines the data structures exchanged over HTTP.
It uses Pydantic models to ensure type safety and automatic validation of incoming data.

Models:
    - CheckoutRequest: shipping snapshot and optional payment method, discount code, notes.
    - CartItemRequest, ProductRequest, UserRequest: collaborator registration payloads.
    - DiscountRequest / DiscountUpdateRequest: admin discount definitions.
    - StatusUpdateRequest, PaymentUpdateRequest, TrackingUpdateRequest: order state machine input.
    - ClaimRequest: warranty claim notes.
    - InventoryItemRequest: service-tracked item with product and motor warranty tracks.
    - *Response: read models built from the domain records via from_entity().
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .entities import (
    CustomerSegment,
    Discount,
    DiscountType,
    InventoryItem,
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    User,
    Warranty,
    WarrantyStatus,
)


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Converts an offset-aware datetime to naive local time; naive values pass through."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class CheckoutRequest(BaseModel):
    """
    Represents a checkout submitted by a storefront customer.

    All shipping fields are required and must not be blank; they are copied
    onto the order and do not follow later profile changes.
    An invalid discount code does not fail the checkout.
    """
    shippingName: str
    shippingAddress: str
    shippingCity: str
    shippingState: str
    shippingZipCode: str
    shippingCountry: str
    shippingPhone: str
    paymentMethod: Optional[str] = None
    discountCode: Optional[str] = None
    notes: Optional[str] = None

    @field_validator(
        "shippingName", "shippingAddress", "shippingCity", "shippingState",
        "shippingZipCode", "shippingCountry", "shippingPhone",
    )
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class CartItemRequest(BaseModel):
    productId: int
    quantity: int = Field(..., gt=0)  # gt=0 means "greater than 0"


class ProductRequest(BaseModel):
    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0)
    stockQuantity: int = Field(0, ge=0)
    brand: Optional[str] = None
    serialNumber: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    categoryId: Optional[int] = None
    warrantyPeriodMonths: int = Field(12, ge=0)


class UserRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None


class DiscountRequest(BaseModel):
    """
    Represents a discount definition created by an administrator.

    Attributes:
        code (str): Unique code, stored upper-cased.
        type (DiscountType): PERCENTAGE, FIXED_AMOUNT, FREE_SHIPPING or BUY_X_GET_Y.
        value (Decimal): Percentage points or currency amount depending on type.
        maximumDiscountAmount (Decimal): Cap for PERCENTAGE discounts.
        applicableProductIds / applicableCategoryIds: Stored for reference only.
    """
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: DiscountType
    value: Decimal = Field(..., gt=0)
    minimumOrderAmount: Optional[Decimal] = Field(None, ge=0)
    maximumDiscountAmount: Optional[Decimal] = Field(None, ge=0)
    validFrom: datetime
    validTo: datetime
    usageLimit: Optional[int] = Field(None, ge=0)
    perCustomerLimit: Optional[int] = Field(None, ge=0)
    customerSegment: Optional[CustomerSegment] = None
    applicableProductIds: List[int] = []
    applicableCategoryIds: List[int] = []
    active: Optional[bool] = None
    autoApply: Optional[bool] = None

    @field_validator("validFrom", "validTo")
    @classmethod
    def local_time(cls, value: datetime) -> datetime:
        # Validity is compared against the server's naive local clock.
        return to_local_naive(value)


class DiscountUpdateRequest(BaseModel):
    """Partial update; only fields that are set are applied."""
    name: Optional[str] = None
    description: Optional[str] = None
    value: Optional[Decimal] = Field(None, gt=0)
    minimumOrderAmount: Optional[Decimal] = Field(None, ge=0)
    maximumDiscountAmount: Optional[Decimal] = Field(None, ge=0)
    validFrom: Optional[datetime] = None
    validTo: Optional[datetime] = None
    usageLimit: Optional[int] = Field(None, ge=0)
    perCustomerLimit: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None
    autoApply: Optional[bool] = None

    @field_validator("validFrom", "validTo")
    @classmethod
    def local_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(value)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class PaymentUpdateRequest(BaseModel):
    status: PaymentStatus
    transactionId: Optional[str] = None


class TrackingUpdateRequest(BaseModel):
    trackingNumber: Optional[str] = None
    carrier: Optional[str] = None
    estimatedDelivery: Optional[datetime] = None


class ClaimRequest(BaseModel):
    notes: Optional[str] = None


class WarrantyTrackRequest(BaseModel):
    enabled: bool = False
    periodMonths: Optional[int] = Field(None, ge=0)
    startDate: Optional[date] = None
    endDate: Optional[date] = None


class InventoryItemRequest(BaseModel):
    itemId: Optional[str] = None
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    dateOfPurchase: date
    productWarranty: WarrantyTrackRequest = WarrantyTrackRequest()
    motorWarranty: WarrantyTrackRequest = WarrantyTrackRequest()
    itemDetails: Optional[str] = None
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    serialNumber: Optional[str] = None
    model: Optional[str] = None
    brand: Optional[str] = None
    status: ItemStatus = ItemStatus.ACTIVE
    notes: Optional[str] = None


# --- Responses ---


class ProductResponse(BaseModel):
    id: int
    name: str
    sku: str
    price: Decimal
    stockQuantity: int
    soldCount: int
    warrantyPeriodMonths: int
    active: bool

    @classmethod
    def from_entity(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            sku=product.sku,
            price=product.price,
            stockQuantity=product.stock_quantity,
            soldCount=product.sold_count,
            warrantyPeriodMonths=product.warranty_period_months,
            active=product.active,
        )


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    totalOrders: int
    lifetimeSpent: Decimal

    @classmethod
    def from_entity(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            totalOrders=user.total_orders,
            lifetimeSpent=user.lifetime_spent,
        )


class CartLineResponse(BaseModel):
    productId: int
    quantity: int


class OrderItemResponse(BaseModel):
    productId: int
    productName: str
    productSku: str
    productColor: Optional[str] = None
    productSize: Optional[str] = None
    quantity: int
    unitPrice: Decimal
    totalPrice: Decimal

    @classmethod
    def from_entity(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(
            productId=item.product_id,
            productName=item.product_name,
            productSku=item.product_sku,
            productColor=item.product_color,
            productSize=item.product_size,
            quantity=item.quantity,
            unitPrice=item.unit_price,
            totalPrice=item.total_price,
        )


class OrderResponse(BaseModel):
    id: int
    orderNumber: str
    userId: int
    items: List[OrderItemResponse]
    subtotal: Decimal
    discountAmount: Decimal
    taxAmount: Decimal
    shippingAmount: Decimal
    totalAmount: Decimal
    status: OrderStatus
    paymentStatus: PaymentStatus
    paymentMethod: Optional[str] = None
    paymentTransactionId: Optional[str] = None
    shippingName: str
    shippingAddress: str
    shippingCity: str
    shippingState: str
    shippingZipCode: str
    shippingCountry: str
    shippingPhone: str
    trackingNumber: Optional[str] = None
    carrier: Optional[str] = None
    estimatedDelivery: Optional[datetime] = None
    actualDelivery: Optional[datetime] = None
    appliedDiscountId: Optional[int] = None
    notes: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_entity(cls, order: Order) -> "OrderResponse":
        shipping = order.shipping
        return cls(
            id=order.id,
            orderNumber=order.order_number,
            userId=order.user_id,
            items=[OrderItemResponse.from_entity(item) for item in order.items],
            subtotal=order.subtotal,
            discountAmount=order.discount_amount,
            taxAmount=order.tax_amount,
            shippingAmount=order.shipping_amount,
            totalAmount=order.total_amount,
            status=order.status,
            paymentStatus=order.payment_status,
            paymentMethod=order.payment_method,
            paymentTransactionId=order.payment_transaction_id,
            shippingName=shipping.name,
            shippingAddress=shipping.address,
            shippingCity=shipping.city,
            shippingState=shipping.state,
            shippingZipCode=shipping.zip_code,
            shippingCountry=shipping.country,
            shippingPhone=shipping.phone,
            trackingNumber=order.tracking_number,
            carrier=order.carrier,
            estimatedDelivery=order.estimated_delivery,
            actualDelivery=order.actual_delivery,
            appliedDiscountId=order.applied_discount_id,
            notes=order.notes,
            createdAt=order.created_at,
            updatedAt=order.updated_at,
        )


class DiscountResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    type: DiscountType
    value: Decimal
    minimumOrderAmount: Optional[Decimal] = None
    maximumDiscountAmount: Optional[Decimal] = None
    validFrom: datetime
    validTo: datetime
    usageLimit: Optional[int] = None
    usageCount: int
    perCustomerLimit: Optional[int] = None
    customerSegment: CustomerSegment
    applicableProductIds: List[int]
    applicableCategoryIds: List[int]
    active: bool
    autoApply: bool
    currentlyValid: bool

    @classmethod
    def from_entity(cls, discount: Discount) -> "DiscountResponse":
        return cls(
            id=discount.id,
            code=discount.code,
            name=discount.name,
            description=discount.description,
            type=discount.type,
            value=discount.value,
            minimumOrderAmount=discount.minimum_order_amount,
            maximumDiscountAmount=discount.maximum_discount_amount,
            validFrom=discount.valid_from,
            validTo=discount.valid_to,
            usageLimit=discount.usage_limit,
            usageCount=discount.usage_count,
            perCustomerLimit=discount.per_customer_limit,
            customerSegment=discount.customer_segment,
            applicableProductIds=sorted(discount.applicable_product_ids),
            applicableCategoryIds=sorted(discount.applicable_category_ids),
            active=discount.active,
            autoApply=discount.auto_apply,
            currentlyValid=discount.is_currently_valid(),
        )


class DiscountValidationResponse(BaseModel):
    valid: bool
    discount: Optional[DiscountResponse] = None
    discountAmount: Optional[Decimal] = None
    finalTotal: Optional[Decimal] = None
    message: Optional[str] = None


class WarrantyResponse(BaseModel):
    id: int
    warrantyNumber: str
    productId: int
    productName: Optional[str] = None
    productSku: Optional[str] = None
    userId: int
    orderId: Optional[int] = None
    orderNumber: Optional[str] = None
    serialNumber: Optional[str] = None
    purchaseDate: date
    warrantyStartDate: date
    warrantyEndDate: date
    status: WarrantyStatus
    notes: Optional[str] = None
    claimFiled: bool
    lastClaimDate: Optional[datetime] = None
    claimCount: int
    daysRemaining: int
    expiringSoon: bool
    valid: bool
    createdAt: datetime

    @classmethod
    def from_entity(
            cls,
            warranty: Warranty,
            product: Optional[Product] = None,
            order: Optional[Order] = None,
    ) -> "WarrantyResponse":
        return cls(
            id=warranty.id,
            warrantyNumber=warranty.warranty_number,
            productId=warranty.product_id,
            productName=product.name if product else None,
            productSku=product.sku if product else None,
            userId=warranty.user_id,
            orderId=warranty.order_id,
            orderNumber=order.order_number if order else None,
            serialNumber=warranty.serial_number,
            purchaseDate=warranty.purchase_date,
            warrantyStartDate=warranty.warranty_start_date,
            warrantyEndDate=warranty.warranty_end_date,
            status=warranty.status,
            notes=warranty.notes,
            claimFiled=warranty.claim_filed,
            lastClaimDate=warranty.last_claim_date,
            claimCount=warranty.claim_count,
            daysRemaining=warranty.days_until_expiry(),
            expiringSoon=warranty.is_expiring_soon(),
            valid=warranty.is_valid(),
            createdAt=warranty.created_at,
        )


class WarrantyTrackResponse(BaseModel):
    enabled: bool
    periodMonths: Optional[int] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    valid: bool
    daysRemaining: int


class InventoryItemResponse(BaseModel):
    id: int
    itemId: str
    name: str
    category: str
    dateOfPurchase: date
    productWarranty: WarrantyTrackResponse
    motorWarranty: WarrantyTrackResponse
    serialNumber: Optional[str] = None
    customerName: Optional[str] = None
    status: ItemStatus
    hasAnyWarranty: bool
    hasAnyValidWarranty: bool
    daysUntilWarrantyExpiry: int

    @classmethod
    def from_entity(cls, item: InventoryItem) -> "InventoryItemResponse":
        def track(t) -> WarrantyTrackResponse:
            return WarrantyTrackResponse(
                enabled=t.enabled,
                periodMonths=t.period_months,
                startDate=t.start_date,
                endDate=t.end_date,
                valid=t.is_valid(),
                daysRemaining=t.days_remaining(),
            )

        return cls(
            id=item.id,
            itemId=item.item_code,
            name=item.name,
            category=item.category,
            dateOfPurchase=item.date_of_purchase,
            productWarranty=track(item.product_warranty),
            motorWarranty=track(item.motor_warranty),
            serialNumber=item.serial_number,
            customerName=item.customer_name,
            status=item.status,
            hasAnyWarranty=item.has_any_warranty(),
            hasAnyValidWarranty=item.has_any_valid_warranty(),
            daysUntilWarrantyExpiry=item.days_until_warranty_expiry(),
        )
