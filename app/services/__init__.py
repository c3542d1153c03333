# Services module
from app.services.catalog_service import CatalogService
from app.services.discount_service import DiscountService
from app.services.inventory_service import InventoryLedger
from app.services.location_service import LocationResolver
from app.services.order_requirements_service import OrderRequirementsProvider
from app.services.wholesale_service import WholesaleEligibilityEvaluator
from app.services.payment_service import PaymentDispatcher
from app.services.notification_service import NotificationDispatcher
from app.services.order_service import OrderService

__all__ = [
    "CatalogService",
    "DiscountService",
    "InventoryLedger",
    "LocationResolver",
    "OrderRequirementsProvider",
    "WholesaleEligibilityEvaluator",
    # Post-commit
    "PaymentDispatcher",
    "NotificationDispatcher",
    "OrderService",
]
