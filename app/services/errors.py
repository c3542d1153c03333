"""Domain errors raised by the checkout and inventory services."""
from typing import Dict


class CheckoutError(Exception):
    """Base class for errors that reject an order before anything is committed."""

    def __init__(self, message: str, details: Dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class OrderValidationError(CheckoutError):
    """Malformed request: missing items, incomplete address, unknown payment method."""


class OrderRequirementError(CheckoutError):
    """Order is below the minimum quantity for the customer's role."""


class ProductUnavailableError(CheckoutError):
    """A requested product does not exist or is inactive."""


class InsufficientStockError(CheckoutError):
    """Not enough available stock for a line item."""


class ConcurrentStockChangeError(CheckoutError):
    """Stock passed the pre-check but the conditional decrement found it gone."""


class DiscountUnavailableError(CheckoutError):
    """The applied discount code was exhausted or disabled before the order committed."""


class InventoryError(Exception):
    """Stock operation rejected: unknown stock record, negative result, bad transfer."""

    def __init__(self, message: str, details: Dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)
