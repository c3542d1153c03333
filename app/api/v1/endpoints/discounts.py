from fastapi import APIRouter

from app.api.deps import DB, CurrentIdentity
from app.schemas.discount import DiscountValidateRequest, DiscountValidateResponse
from app.services.discount_service import DiscountService


router = APIRouter(tags=["Discounts"])


@router.post("/validate", response_model=DiscountValidateResponse)
async def validate_discount_code(
    request: DiscountValidateRequest,
    identity: CurrentIdentity,
    db: DB,
):
    """
    Preview a discount code against a subtotal.
    Does not consume the code; redemption happens when the order is placed.
    """
    evaluation = await DiscountService(db).evaluate(request.code, request.subtotal)
    return DiscountValidateResponse(
        valid=evaluation.eligible,
        code=evaluation.code,
        discount_amount=evaluation.discount_amount,
        message=evaluation.message,
    )
