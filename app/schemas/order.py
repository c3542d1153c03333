import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


# ==================== REQUEST ====================
# Completeness (non-empty items, full address, payment method) is checked by
# OrderService so every such failure is reported the same way.

class OrderItemInput(BaseCreateSchema):
    """Requested line item."""
    product_id: uuid.UUID
    quantity: int = Field(..., strict=True)  # JSON "3" or 3.0 is not a quantity


class AddressInput(BaseCreateSchema):
    """Shipping or billing address."""
    name: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "CA"
    phone: Optional[str] = None


class OrderCreate(BaseCreateSchema):
    """Place-order request."""
    items: List[OrderItemInput] = Field(default_factory=list)
    shipping_address: Optional[AddressInput] = None
    billing_address: Optional[AddressInput] = None  # Defaults to shipping address
    payment_method: Optional[str] = None
    discount_code: Optional[str] = None
    notes: Optional[str] = None


# ==================== RESPONSE ====================

class PaymentResultResponse(BaseResponseSchema):
    success: bool
    status: str
    transaction_id: Optional[str] = None
    message: str = ""


class PlaceOrderResponse(BaseResponseSchema):
    """Result of placing an order."""
    success: bool = True
    order_id: uuid.UUID
    order_number: str
    status: str
    payment_status: str
    is_wholesale: bool
    subtotal: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    taxes: Decimal
    total_amount: Decimal
    discount_code: Optional[str] = None
    payment_result: Optional[PaymentResultResponse] = None
    message: str


class OrderItemResponse(BaseResponseSchema):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    unit_price: Decimal
    quantity: int
    total_amount: Decimal


class OrderStatusHistoryResponse(BaseResponseSchema):
    from_status: Optional[str] = None
    to_status: str
    notes: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseResponseSchema):
    """Order detail for the customer who placed it."""
    id: uuid.UUID
    order_number: str
    status: str
    payment_status: str
    payment_method: str
    payment_transaction_id: Optional[str] = None
    location_id: str
    is_wholesale: bool
    total_quantity: int
    subtotal: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    taxes: Decimal
    total_amount: Decimal
    discount_code: Optional[str] = None
    shipping_address: dict
    billing_address: dict
    items: List[OrderItemResponse] = []
    status_history: List[OrderStatusHistoryResponse] = []
    created_at: datetime


class OrderListResponse(BaseModel):
    """Paginated list of the caller's orders."""
    items: List[OrderResponse]
    total: int
    page: int
    size: int
    pages: int
