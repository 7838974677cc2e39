"""
services.py — Service Wiring

Builds every service of one process around a shared ShopStores bundle, plus
the small collaborator operations the HTTP layer needs (product and user
registration, adding to the cart).
"""

from .clients import ShippingStatusListener
from .discounts import DiscountService
from .entities import CartLine, Product, User
from .errors import BusinessRuleError, InsufficientStockError
from .inventory import InventoryService
from .models import ProductRequest, UserRequest
from .orders import OrderService
from .scheduler import ExpirySweepScheduler
from .stores import ShopStores
from .warranties import WarrantyService
from .workflow import CheckoutWorkflow


class ShopServices:
    def __init__(self, stores: ShopStores = None, compensate: bool = None):
        self.stores = stores or ShopStores()
        self.discounts = DiscountService(self.stores)
        self.warranties = WarrantyService(self.stores)
        self.inventory = InventoryService(self.stores)
        self.workflow = CheckoutWorkflow(self.stores, self.discounts, self.warranties, compensate)
        self.orders = OrderService(self.stores, self.workflow, self.warranties)
        self.scheduler = ExpirySweepScheduler(self.warranties)
        self.listener = ShippingStatusListener(self.orders)

    def register_product(self, request: ProductRequest) -> Product:
        product = Product(
            name=request.name,
            sku=request.sku,
            price=request.price,
            stock_quantity=request.stockQuantity,
            brand=request.brand,
            serial_number=request.serialNumber,
            color=request.color,
            size=request.size,
            category_id=request.categoryId,
            warranty_period_months=request.warrantyPeriodMonths,
        )
        return self.stores.catalog.add_product(product)

    def register_user(self, request: UserRequest) -> User:
        return self.stores.users.add_user(User(name=request.name, email=request.email, phone=request.phone))

    def add_to_cart(self, user_id: int, product_id: int, quantity: int) -> CartLine:
        """
        Adds a product to the user's cart.

        Raises:
            NotFoundError: If the user or product does not exist.
            BusinessRuleError: If the product is inactive.
            InsufficientStockError: If the cart would hold more units than are in stock.
        """
        stores = self.stores
        with stores.lock:
            stores.users.get_user(user_id)
            product = stores.catalog.get_product(product_id)
            if not product.active:
                raise BusinessRuleError("Product is not available")

            wanted = stores.carts.quantity_of(user_id, product_id) + quantity
            if product.stock_quantity < wanted:
                raise InsufficientStockError(product.name, product.stock_quantity, wanted)
            return stores.carts.add_item(user_id, product_id, quantity)
