from fastapi import APIRouter

from app.api.v1.endpoints import (
    orders,
    discounts,
    inventory,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Checkout ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)
api_router.include_router(
    discounts.router,
    prefix="/discounts",
    tags=["Discounts"]
)

# ==================== Inventory (admin) ====================
api_router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["Inventory"]
)
