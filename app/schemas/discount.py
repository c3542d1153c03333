from decimal import Decimal
from typing import Optional

from pydantic import Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class DiscountValidateRequest(BaseCreateSchema):
    """Preview a code against a cart subtotal without consuming it."""
    code: str = Field(..., min_length=1, max_length=50)
    subtotal: Decimal = Field(..., ge=0)


class DiscountValidateResponse(BaseResponseSchema):
    valid: bool
    code: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")
    message: str
