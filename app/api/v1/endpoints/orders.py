import uuid
import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import CurrentIdentity, OrderServiceDep
from app.schemas.order import (
    OrderCreate,
    OrderResponse,
    OrderListResponse,
    PlaceOrderResponse,
    PaymentResultResponse,
)
from app.models.order import OrderStatus
from app.services.errors import CheckoutError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])


@router.post(
    "",
    response_model=PlaceOrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_order(
    data: OrderCreate,
    identity: CurrentIdentity,
    service: OrderServiceDep,
):
    """
    Place an order for the authenticated customer.

    Stock is committed atomically with the order. Payment runs afterwards;
    a payment failure still returns 201 with payment_status FAILED.
    """
    try:
        result = await service.place_order(identity.user_id, identity.role, data)
    except CheckoutError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )
    except Exception as e:
        logger.error(f"Failed to place order for user {identity.user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to place order. Please try again later."
        )

    payment = result.payment_result
    return PlaceOrderResponse(
        order_id=result.order_id,
        order_number=result.order_number,
        status=result.status,
        payment_status=result.payment_status,
        is_wholesale=result.is_wholesale,
        subtotal=result.pricing.subtotal,
        discount_amount=result.pricing.discount_amount,
        shipping_cost=result.pricing.shipping_cost,
        taxes=result.pricing.taxes,
        total_amount=result.pricing.total_amount,
        discount_code=result.discount_code,
        payment_result=PaymentResultResponse(
            success=payment.success,
            status=payment.status.value,
            transaction_id=payment.transaction_id,
            message=payment.message,
        ) if payment else None,
        message=result.message,
    )


@router.get(
    "/me",
    response_model=OrderListResponse,
)
async def list_my_orders(
    identity: CurrentIdentity,
    service: OrderServiceDep,
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
):
    """Get a paginated list of the caller's own orders, newest first."""
    orders, total = await service.get_orders_for_user(
        identity.user_id,
        status=order_status,
        skip=(page - 1) * size,
        limit=size,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get(
    "/me/{order_id}",
    response_model=OrderResponse,
)
async def get_my_order(
    order_id: uuid.UUID,
    identity: CurrentIdentity,
    service: OrderServiceDep,
):
    """Get one of the caller's own orders with items and status history."""
    order = await service.get_order_for_user(identity.user_id, order_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return OrderResponse.model_validate(order)
