# Models module
from app.models.user import User, UserRole
from app.models.product import Product
from app.models.inventory import StockLocation, StockLevel, StockMovement, StockMovementType
from app.models.order import (
    Order,
    OrderItem,
    OrderStatusHistory,
    Payment,
    OrderStatus,
    PaymentStatus,
    PaymentMethod,
)
from app.models.discount import DiscountCode, DiscountRedemption, DiscountType
from app.models.order_requirement import OrderRequirement, RequirementType, ALL_ROLES

__all__ = [
    "User",
    "UserRole",
    "Product",
    # Inventory
    "StockLocation",
    "StockLevel",
    "StockMovement",
    "StockMovementType",
    # Orders
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Payment",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    # Discounts
    "DiscountCode",
    "DiscountRedemption",
    "DiscountType",
    "OrderRequirement",
    "RequirementType",
    "ALL_ROLES",
]
