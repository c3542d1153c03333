import uuid
from datetime import datetime
from typing import Optional, List

from pydantic import Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class StockAdjustRequest(BaseCreateSchema):
    product_id: uuid.UUID
    location_id: str
    change: int = Field(..., description="Positive to add stock, negative to remove")
    notes: Optional[str] = None


class StockTransferRequest(BaseCreateSchema):
    product_id: uuid.UUID
    from_location_id: str
    to_location_id: str
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None


class StockHoldItem(BaseCreateSchema):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1)


class StockHoldRequest(BaseCreateSchema):
    """Reserve, fulfill or release a batch of items at one location."""
    location_id: str
    items: List[StockHoldItem] = Field(..., min_length=1)
    reference_id: Optional[uuid.UUID] = None


class ReorderLevelsRequest(BaseCreateSchema):
    product_id: uuid.UUID
    location_id: str
    reorder_point: Optional[int] = Field(None, ge=0, description="Null clears the threshold")
    reorder_quantity: Optional[int] = Field(None, ge=0)


class StockLevelResponse(BaseResponseSchema):
    product_id: uuid.UUID
    location_id: str
    quantity: int
    reserved_quantity: int
    available_quantity: int
    reorder_point: Optional[int] = None
    reorder_quantity: Optional[int] = None


class LowStockItemResponse(StockLevelResponse):
    """Stock record at or below its reorder point."""
    sku: str
    product_name: str


class StockMovementResponse(BaseResponseSchema):
    id: uuid.UUID
    movement_type: str
    product_id: uuid.UUID
    location_id: str
    quantity: int
    reserved_quantity: int
    reference_type: Optional[str] = None
    reference_id: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class StockTransferResponse(BaseResponseSchema):
    transfer_id: uuid.UUID
    product_id: uuid.UUID
    from_location_id: str
    to_location_id: str
    quantity: int
