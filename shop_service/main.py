"""
main.py — FastAPI Entry Point for the Shop Service

This module provides the REST API for storefront customers and administrators.

Responsibilities:
    • Checkout, order tracking and cancellation for customers
    • Warranty lookup and claim filing
    • Discount code validation
    • Admin management of orders, discounts, warranties and service-tracked inventory
    • Start and stop the background warranty expiry sweep and the shipping status listener
    • Provide system health information

Caller identity is taken from the X-User-Id header.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse

from . import config
from .entities import Order, OrderStatus, Warranty, WarrantyStatus
from .errors import (
    BusinessRuleError,
    DuplicateError,
    InvalidDiscountError,
    NotFoundError,
    ShopError,
    ValidationError,
)
from .logging_config import setup_logging
from .models import (
    CartItemRequest,
    CartLineResponse,
    CheckoutRequest,
    ClaimRequest,
    DiscountRequest,
    DiscountResponse,
    DiscountUpdateRequest,
    DiscountValidationResponse,
    InventoryItemRequest,
    InventoryItemResponse,
    OrderResponse,
    PaymentUpdateRequest,
    ProductRequest,
    ProductResponse,
    StatusUpdateRequest,
    TrackingUpdateRequest,
    UserRequest,
    UserResponse,
    WarrantyResponse,
)
from .services import ShopServices

log = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFoundError: 404,
    ValidationError: 422,
    DuplicateError: 409,
    BusinessRuleError: 400,
}

INVENTORY_TRACKS = {"product": "product_warranty", "motor": "motor_warranty"}

router = APIRouter()


def get_shop(request: Request) -> ShopServices:
    return request.app.state.shop


def current_user_id(x_user_id: int = Header(..., alias="X-User-Id")) -> int:
    return x_user_id


def warranty_response(shop: ShopServices, warranty: Warranty) -> WarrantyResponse:
    return WarrantyResponse.from_entity(
        warranty,
        product=shop.stores.catalog.lookup(warranty.product_id),
        order=shop.stores.orders.lookup(warranty.order_id),
    )


def owned_order(shop: ShopServices, order_id: int, user_id: int) -> Order:
    """Another customer's order is reported as missing."""
    order = shop.orders.get_order(order_id)
    if order.user_id != user_id:
        raise NotFoundError("Order", "id", order_id)
    return order


def owned_warranty(shop: ShopServices, warranty_id: int, user_id: int) -> Warranty:
    warranty = shop.warranties.get_warranty(warranty_id)
    if warranty.user_id != user_id:
        raise NotFoundError("Warranty", "id", warranty_id)
    return warranty


def inventory_track(track: str) -> str:
    if track not in INVENTORY_TRACKS:
        raise ValidationError(f"Unknown warranty track '{track}', expected one of {sorted(INVENTORY_TRACKS)}")
    return INVENTORY_TRACKS[track]


# Health Check Endpoint
@router.get("/health")
def health_check(shop: ShopServices = Depends(get_shop)):
    """
    Simple health check endpoint.

    Returns:
        dict: Service availability and whether the expiry sweep thread is running.
    """
    return {"status": "ok", "sweepRunning": shop.scheduler.running}


# --- Catalog and customers (collaborator surface) ---


@router.post("/api/admin/products", response_model=ProductResponse, status_code=201)
def register_product(body: ProductRequest, shop: ShopServices = Depends(get_shop)):
    return ProductResponse.from_entity(shop.register_product(body))


@router.get("/api/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, shop: ShopServices = Depends(get_shop)):
    return ProductResponse.from_entity(shop.stores.catalog.get_product(product_id))


@router.post("/api/users", response_model=UserResponse, status_code=201)
def register_user(body: UserRequest, shop: ShopServices = Depends(get_shop)):
    return UserResponse.from_entity(shop.register_user(body))


@router.get("/api/users/me", response_model=UserResponse)
def get_me(user_id: int = Depends(current_user_id), shop: ShopServices = Depends(get_shop)):
    return UserResponse.from_entity(shop.stores.users.get_user(user_id))


@router.get("/api/cart", response_model=List[CartLineResponse])
def get_cart(user_id: int = Depends(current_user_id), shop: ShopServices = Depends(get_shop)):
    return [
        CartLineResponse(productId=line.product_id, quantity=line.quantity)
        for line in shop.stores.carts.get_cart_items(user_id)
    ]


@router.post("/api/cart/items", response_model=CartLineResponse, status_code=201)
def add_to_cart(body: CartItemRequest, user_id: int = Depends(current_user_id),
                shop: ShopServices = Depends(get_shop)):
    line = shop.add_to_cart(user_id, body.productId, body.quantity)
    return CartLineResponse(productId=line.product_id, quantity=line.quantity)


# --- Orders (storefront) ---


@router.post("/api/orders/checkout", response_model=OrderResponse, status_code=201)
def checkout(body: CheckoutRequest, user_id: int = Depends(current_user_id),
             shop: ShopServices = Depends(get_shop)):
    """
    Converts the caller's cart into an order.

    Returns:
        OrderResponse: The PENDING order with totals; warranties are issued per item.

    Raises:
        400: Empty cart or insufficient stock.
        404: Unknown user or product.
    """
    return OrderResponse.from_entity(shop.orders.create_order(user_id, body))


@router.get("/api/orders", response_model=List[OrderResponse])
def my_orders(user_id: int = Depends(current_user_id), shop: ShopServices = Depends(get_shop)):
    return [OrderResponse.from_entity(o) for o in shop.orders.list_by_user(user_id)]


@router.get("/api/orders/track/{order_number}", response_model=OrderResponse)
def track_order(order_number: str, shop: ShopServices = Depends(get_shop)):
    return OrderResponse.from_entity(shop.orders.track_order(order_number))


@router.get("/api/orders/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, user_id: int = Depends(current_user_id), shop: ShopServices = Depends(get_shop)):
    return OrderResponse.from_entity(owned_order(shop, order_id, user_id))


@router.get("/api/orders/{order_id}/warranties", response_model=List[WarrantyResponse])
def order_warranties(order_id: int, user_id: int = Depends(current_user_id),
                     shop: ShopServices = Depends(get_shop)):
    owned_order(shop, order_id, user_id)
    return [warranty_response(shop, w) for w in shop.warranties.list_by_order(order_id)]


@router.post("/api/orders/{order_id}/cancel", response_model=OrderResponse)
def cancel_my_order(order_id: int, user_id: int = Depends(current_user_id),
                    shop: ShopServices = Depends(get_shop)):
    owned_order(shop, order_id, user_id)
    return OrderResponse.from_entity(shop.orders.cancel_order(order_id))


# --- Warranties (storefront) ---


@router.get("/api/warranties", response_model=List[WarrantyResponse])
def my_warranties(user_id: int = Depends(current_user_id), shop: ShopServices = Depends(get_shop)):
    return [warranty_response(shop, w) for w in shop.warranties.list_by_user(user_id)]


@router.get("/api/warranties/lookup", response_model=WarrantyResponse)
def lookup_warranty(warrantyNumber: Optional[str] = None, serialNumber: Optional[str] = None,
                    shop: ShopServices = Depends(get_shop)):
    if warrantyNumber:
        return warranty_response(shop, shop.warranties.get_warranty_by_number(warrantyNumber))
    if serialNumber:
        return warranty_response(shop, shop.warranties.get_warranty_by_serial_number(serialNumber))
    raise ValidationError("warrantyNumber or serialNumber is required")


@router.get("/api/warranties/{warranty_id}", response_model=WarrantyResponse)
def get_warranty(warranty_id: int, user_id: int = Depends(current_user_id),
                 shop: ShopServices = Depends(get_shop)):
    return warranty_response(shop, owned_warranty(shop, warranty_id, user_id))


@router.post("/api/warranties/{warranty_id}/claims", response_model=WarrantyResponse)
def file_claim(warranty_id: int, body: ClaimRequest, user_id: int = Depends(current_user_id),
               shop: ShopServices = Depends(get_shop)):
    owned_warranty(shop, warranty_id, user_id)
    return warranty_response(shop, shop.warranties.file_claim(warranty_id, body.notes))


# --- Discounts (storefront) ---


@router.get("/api/discounts/validate/{code}", response_model=DiscountValidationResponse)
def validate_discount(code: str, orderTotal: Decimal = Query(..., ge=0), shop: ShopServices = Depends(get_shop)):
    try:
        discount = shop.discounts.validate_and_get_discount(code, orderTotal)
    except (NotFoundError, InvalidDiscountError) as e:
        return DiscountValidationResponse(valid=False, message=str(e))

    amount = discount.calculate_discount(orderTotal)
    return DiscountValidationResponse(
        valid=True,
        discount=DiscountResponse.from_entity(discount),
        discountAmount=amount,
        finalTotal=orderTotal - amount,
    )


# --- Admin: orders ---


@router.get("/api/admin/orders", response_model=List[OrderResponse])
def admin_list_orders(status: Optional[OrderStatus] = None, shop: ShopServices = Depends(get_shop)):
    orders = shop.orders.list_by_status(status) if status else shop.orders.list_all()
    return [OrderResponse.from_entity(o) for o in orders]


@router.get("/api/admin/orders/stats")
def admin_order_stats(shop: ShopServices = Depends(get_shop)):
    return {
        "totalSales": shop.orders.total_sales(),
        "byStatus": {status.value: shop.orders.count_by_status(status) for status in OrderStatus},
    }


@router.get("/api/admin/orders/{order_id}", response_model=OrderResponse)
def admin_get_order(order_id: int, shop: ShopServices = Depends(get_shop)):
    return OrderResponse.from_entity(shop.orders.get_order(order_id))


@router.patch("/api/admin/orders/{order_id}/status", response_model=OrderResponse)
def admin_update_status(order_id: int, body: StatusUpdateRequest, shop: ShopServices = Depends(get_shop)):
    return OrderResponse.from_entity(shop.orders.update_order_status(order_id, body.status))


@router.patch("/api/admin/orders/{order_id}/payment", response_model=OrderResponse)
def admin_update_payment(order_id: int, body: PaymentUpdateRequest, shop: ShopServices = Depends(get_shop)):
    return OrderResponse.from_entity(shop.orders.update_payment_status(order_id, body.status, body.transactionId))


@router.patch("/api/admin/orders/{order_id}/tracking", response_model=OrderResponse)
def admin_update_tracking(order_id: int, body: TrackingUpdateRequest, shop: ShopServices = Depends(get_shop)):
    order = shop.orders.update_tracking(order_id, body.trackingNumber, body.carrier, body.estimatedDelivery)
    return OrderResponse.from_entity(order)


@router.post("/api/admin/orders/{order_id}/cancel", response_model=OrderResponse)
def admin_cancel_order(order_id: int, shop: ShopServices = Depends(get_shop)):
    return OrderResponse.from_entity(shop.orders.cancel_order(order_id))


# --- Admin: discounts ---


@router.get("/api/admin/discounts", response_model=List[DiscountResponse])
def admin_list_discounts(shop: ShopServices = Depends(get_shop)):
    return [DiscountResponse.from_entity(d) for d in shop.discounts.list_discounts()]


@router.get("/api/admin/discounts/active", response_model=List[DiscountResponse])
def admin_active_discounts(shop: ShopServices = Depends(get_shop)):
    return [DiscountResponse.from_entity(d) for d in shop.discounts.list_active_discounts()]


@router.get("/api/admin/discounts/auto-apply", response_model=List[DiscountResponse])
def admin_auto_apply_discounts(shop: ShopServices = Depends(get_shop)):
    return [DiscountResponse.from_entity(d) for d in shop.discounts.list_auto_apply_discounts()]


@router.get("/api/admin/discounts/{discount_id}", response_model=DiscountResponse)
def admin_get_discount(discount_id: int, shop: ShopServices = Depends(get_shop)):
    return DiscountResponse.from_entity(shop.discounts.get_discount(discount_id))


@router.post("/api/admin/discounts", response_model=DiscountResponse, status_code=201)
def admin_create_discount(body: DiscountRequest, shop: ShopServices = Depends(get_shop)):
    return DiscountResponse.from_entity(shop.discounts.create_discount(body))


@router.put("/api/admin/discounts/{discount_id}", response_model=DiscountResponse)
def admin_update_discount(discount_id: int, body: DiscountUpdateRequest, shop: ShopServices = Depends(get_shop)):
    return DiscountResponse.from_entity(shop.discounts.update_discount(discount_id, body))


@router.patch("/api/admin/discounts/{discount_id}/toggle", response_model=DiscountResponse)
def admin_toggle_discount(discount_id: int, shop: ShopServices = Depends(get_shop)):
    return DiscountResponse.from_entity(shop.discounts.toggle_discount_status(discount_id))


@router.delete("/api/admin/discounts/{discount_id}", response_model=DiscountResponse)
def admin_delete_discount(discount_id: int, shop: ShopServices = Depends(get_shop)):
    return DiscountResponse.from_entity(shop.discounts.delete_discount(discount_id))


# --- Admin: warranties ---


@router.get("/api/admin/warranties", response_model=List[WarrantyResponse])
def admin_list_warranties(status: Optional[WarrantyStatus] = None, shop: ShopServices = Depends(get_shop)):
    warranties = shop.warranties.list_by_status(status) if status else shop.warranties.list_all()
    return [warranty_response(shop, w) for w in warranties]


@router.get("/api/admin/warranties/expiring", response_model=List[WarrantyResponse])
def admin_expiring_warranties(daysAhead: int = Query(config.EXPIRING_SOON_DAYS, ge=0),
                              shop: ShopServices = Depends(get_shop)):
    return [warranty_response(shop, w) for w in shop.warranties.list_expiring(daysAhead)]


@router.post("/api/admin/warranties/sweep")
def admin_run_sweep(shop: ShopServices = Depends(get_shop)):
    """Runs the expiry sweep immediately, outside the daily schedule."""
    return {"expired": shop.scheduler.run_once()}


@router.get("/api/admin/warranties/{warranty_id}", response_model=WarrantyResponse)
def admin_get_warranty(warranty_id: int, shop: ShopServices = Depends(get_shop)):
    return warranty_response(shop, shop.warranties.get_warranty(warranty_id))


@router.post("/api/admin/warranties/{warranty_id}/void", response_model=WarrantyResponse)
def admin_void_warranty(warranty_id: int, shop: ShopServices = Depends(get_shop)):
    return warranty_response(shop, shop.warranties.void_warranty(warranty_id))


# --- Admin: service-tracked inventory ---


@router.get("/api/admin/inventory", response_model=List[InventoryItemResponse])
def admin_list_items(category: Optional[str] = None, shop: ShopServices = Depends(get_shop)):
    items = shop.inventory.list_by_category(category) if category else shop.inventory.list_items()
    return [InventoryItemResponse.from_entity(i) for i in items]


@router.get("/api/admin/inventory/stats")
def admin_inventory_stats(shop: ShopServices = Depends(get_shop)):
    return shop.inventory.warranty_stats()


@router.get("/api/admin/inventory/expiring", response_model=List[InventoryItemResponse])
def admin_expiring_items(track: Optional[str] = None, shop: ShopServices = Depends(get_shop)):
    if track is None:
        items = shop.inventory.list_any_expiring()
    else:
        items = shop.inventory.list_expiring(inventory_track(track))
    return [InventoryItemResponse.from_entity(i) for i in items]


@router.get("/api/admin/inventory/expired", response_model=List[InventoryItemResponse])
def admin_expired_items(track: str = "product", shop: ShopServices = Depends(get_shop)):
    return [InventoryItemResponse.from_entity(i) for i in shop.inventory.list_expired(inventory_track(track))]


@router.post("/api/admin/inventory", response_model=InventoryItemResponse, status_code=201)
def admin_create_item(body: InventoryItemRequest, shop: ShopServices = Depends(get_shop)):
    return InventoryItemResponse.from_entity(shop.inventory.create_item(body))


@router.get("/api/admin/inventory/{item_id}", response_model=InventoryItemResponse)
def admin_get_item(item_id: int, shop: ShopServices = Depends(get_shop)):
    return InventoryItemResponse.from_entity(shop.inventory.get_item(item_id))


@router.put("/api/admin/inventory/{item_id}", response_model=InventoryItemResponse)
def admin_update_item(item_id: int, body: InventoryItemRequest, shop: ShopServices = Depends(get_shop)):
    return InventoryItemResponse.from_entity(shop.inventory.update_item(item_id, body))


@router.delete("/api/admin/inventory/{item_id}", status_code=204)
def admin_delete_item(item_id: int, shop: ShopServices = Depends(get_shop)):
    shop.inventory.delete_item(item_id)


def create_app(shop: ShopServices = None) -> FastAPI:
    """
    Builds the FastAPI application around a set of services.

    Args:
        shop (ShopServices): The services to serve; a fresh in-memory set by default.

    Returns:
        FastAPI: The application with routes, error mapping and lifecycle handlers.
    """
    app = FastAPI(title="Shop Service")
    app.state.shop = shop or ShopServices()
    app.include_router(router)

    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
        """Map ShopError subclasses to appropriate HTTP responses."""
        status_code = next(
            (ERROR_STATUS_CODES[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS_CODES),
            500,
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error_type": type(exc).__name__},
        )

    # Startup Event: Launch background threads
    @app.on_event("startup")
    def on_startup():
        """
        Starts the daily warranty expiry sweep and, when enabled, the
        shipping status listener. Both run as daemon threads.
        """
        log.info("Shop service starting...")
        services = app.state.shop
        if config.SWEEP_ENABLED:
            services.scheduler.start()
        if config.SHIPPING_LISTENER_ENABLED:
            services.listener.start()
            log.info("Shipping status listener thread started.")

    @app.on_event("shutdown")
    def on_shutdown():
        services = app.state.shop
        services.scheduler.stop()
        if config.SHIPPING_LISTENER_ENABLED:
            services.listener.stop()
        log.info("Shop service stopped.")

    return app


# Initialization
# Configure logging and initialize FastAPI app
setup_logging()
app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
