"""Exception hierarchy for the shop service.

Three kinds of failure reach the caller:
    • NotFoundError: an entity lookup missed
    • ValidationError: malformed input
    • BusinessRuleError: well-formed input that the current state forbids
"""


class ShopError(Exception):
    """Base exception for all shop service errors."""

    pass


class NotFoundError(ShopError):
    """Raised when a user, product, order, discount or warranty does not exist."""

    def __init__(self, entity: str, field: str, value):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} not found with {field}: {value}")


class ValidationError(ShopError):
    """Raised for malformed input, e.g. a blank required field or a non-positive quantity."""

    pass


class BusinessRuleError(ShopError):
    """Raised when an operation is well-formed but not allowed."""

    pass


class EmptyCartError(BusinessRuleError):
    """Raised when checking out with no items in the cart."""

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__("Cart is empty")


class InsufficientStockError(BusinessRuleError):
    """Raised when a product has fewer units in stock than requested."""

    def __init__(self, product_name: str, available: int = None, requested: int = None):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock for: {product_name}")


class InvalidDiscountError(BusinessRuleError):
    """Raised when a discount code exists but cannot be applied."""

    pass


class InvalidStateError(BusinessRuleError):
    """Raised when an entity's current status forbids the requested transition."""

    pass


class DuplicateError(BusinessRuleError):
    """Raised when creating an entity whose unique key is already taken."""

    def __init__(self, entity: str, field: str, value):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} with {field} '{value}' already exists")
