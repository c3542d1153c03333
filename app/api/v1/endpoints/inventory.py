from typing import List, Optional
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from app.api.deps import DB, AdminIdentity
from app.schemas.inventory import (
    StockAdjustRequest,
    StockTransferRequest,
    StockHoldRequest,
    ReorderLevelsRequest,
    StockLevelResponse,
    LowStockItemResponse,
    StockMovementResponse,
    StockTransferResponse,
)
from app.services.errors import InventoryError
from app.services.inventory_service import InventoryLedger, StockRequest


router = APIRouter(tags=["Inventory"])


def _level_response(level) -> StockLevelResponse:
    return StockLevelResponse(
        product_id=level.product_id,
        location_id=level.location_id,
        quantity=level.quantity,
        reserved_quantity=level.reserved_quantity,
        available_quantity=level.available_quantity,
        reorder_point=level.reorder_point,
        reorder_quantity=level.reorder_quantity,
    )


def _bad_request(e: InventoryError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


# Fixed paths are registered before /{product_id} so they are not parsed as product ids

@router.get("/locations/{location_id}", response_model=List[StockLevelResponse])
async def get_location_inventory(
    location_id: str,
    db: DB,
    admin: AdminIdentity,
):
    """All stock records held at one location."""
    try:
        levels = await InventoryLedger(db).get_location_inventory(location_id)
    except InventoryError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return [_level_response(level) for level in levels]


@router.get("/low-stock", response_model=List[LowStockItemResponse])
async def get_low_stock(
    db: DB,
    admin: AdminIdentity,
    location_id: Optional[str] = Query(None),
):
    """Stock at or below its reorder point, lowest available first."""
    levels = await InventoryLedger(db).get_low_stock(location_id)
    return [
        LowStockItemResponse(
            **_level_response(level).model_dump(),
            sku=level.product.sku,
            product_name=level.product.name,
        )
        for level in levels
    ]


@router.put("/reorder-levels", response_model=StockLevelResponse)
async def set_reorder_levels(
    data: ReorderLevelsRequest,
    db: DB,
    admin: AdminIdentity,
):
    try:
        level = await InventoryLedger(db).set_reorder_levels(
            data.product_id, data.location_id, data.reorder_point, data.reorder_quantity
        )
    except InventoryError as e:
        raise _bad_request(e)
    return _level_response(level)


@router.get("/{product_id}", response_model=List[StockLevelResponse])
async def get_stock_levels(
    product_id: uuid.UUID,
    db: DB,
    admin: AdminIdentity,
):
    """Stock levels for a product across all locations."""
    levels = await InventoryLedger(db).get_levels(product_id)
    return [_level_response(level) for level in levels]


@router.get("/{product_id}/movements", response_model=List[StockMovementResponse])
async def get_stock_movements(
    product_id: uuid.UUID,
    db: DB,
    admin: AdminIdentity,
    location_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    """Movement history for a product, newest first."""
    movements = await InventoryLedger(db).get_movements(product_id, location_id, limit)
    return [StockMovementResponse.model_validate(m) for m in movements]


@router.post("/adjust", response_model=StockLevelResponse)
async def adjust_stock(
    data: StockAdjustRequest,
    db: DB,
    admin: AdminIdentity,
):
    """Manual stock correction (+/-)."""
    try:
        level = await InventoryLedger(db).adjust_stock(
            data.product_id,
            data.location_id,
            data.change,
            created_by=admin.user_id,
            notes=data.notes,
        )
    except InventoryError as e:
        raise _bad_request(e)
    return _level_response(level)


@router.post("/transfer", response_model=StockTransferResponse, status_code=status.HTTP_201_CREATED)
async def transfer_stock(
    data: StockTransferRequest,
    db: DB,
    admin: AdminIdentity,
):
    """Move available stock from one location to another."""
    try:
        transfer_id = await InventoryLedger(db).transfer_stock(
            data.product_id,
            data.from_location_id,
            data.to_location_id,
            data.quantity,
            created_by=admin.user_id,
            notes=data.notes,
        )
    except InventoryError as e:
        raise _bad_request(e)
    return StockTransferResponse(
        transfer_id=transfer_id,
        product_id=data.product_id,
        from_location_id=data.from_location_id,
        to_location_id=data.to_location_id,
        quantity=data.quantity,
    )


@router.post("/reserve", status_code=status.HTTP_204_NO_CONTENT)
async def reserve_stock(data: StockHoldRequest, db: DB, admin: AdminIdentity):
    try:
        await InventoryLedger(db).reserve_stock(
            _stock_requests(data), data.location_id, data.reference_id, created_by=admin.user_id
        )
    except InventoryError as e:
        raise _bad_request(e)


@router.post("/fulfill", status_code=status.HTTP_204_NO_CONTENT)
async def fulfill_reservation(data: StockHoldRequest, db: DB, admin: AdminIdentity):
    try:
        await InventoryLedger(db).fulfill_reservation(
            _stock_requests(data), data.location_id, data.reference_id, created_by=admin.user_id
        )
    except InventoryError as e:
        raise _bad_request(e)


@router.post("/release", status_code=status.HTTP_204_NO_CONTENT)
async def release_reservation(data: StockHoldRequest, db: DB, admin: AdminIdentity):
    try:
        await InventoryLedger(db).release_reservation(
            _stock_requests(data), data.location_id, data.reference_id, created_by=admin.user_id
        )
    except InventoryError as e:
        raise _bad_request(e)


def _stock_requests(data: StockHoldRequest) -> List[StockRequest]:
    return [StockRequest(product_id=item.product_id, quantity=item.quantity) for item in data.items]
