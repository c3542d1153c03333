"""
Discount code evaluation and redemption.

Evaluation is read-only and never fails checkout: an unknown or ineligible code
simply yields no discount. Redemption runs inside the order transaction and is
guarded so a code with a usage limit can never be consumed past that limit.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select, update, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.discount import DiscountCode, DiscountRedemption, DiscountType
from app.services.errors import DiscountUnavailableError


logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class DiscountEvaluation:
    """Outcome of checking a code against a subtotal."""
    code: Optional[str]
    discount_amount: Decimal
    eligible: bool
    message: str
    discount_code_id: Optional[uuid.UUID] = None

    @classmethod
    def none(cls, code: Optional[str] = None, message: str = "No discount code applied") -> "DiscountEvaluation":
        return cls(code=code, discount_amount=Decimal("0.00"), eligible=False, message=message)


def calculate_discount(code: DiscountCode, subtotal: Decimal) -> Decimal:
    """Monetary effect of a code on a subtotal, never more than the subtotal."""
    value = Decimal(code.discount_value)

    if code.discount_type == DiscountType.PERCENTAGE.value:
        discount = (subtotal * value / Decimal("100")).quantize(CENTS, rounding=ROUND_HALF_UP)
        # Apply max discount cap if set
        if code.max_discount_amount is not None:
            discount = min(discount, Decimal(code.max_discount_amount))
    elif code.discount_type == DiscountType.FIXED_AMOUNT.value:
        discount = value
    else:
        logger.warning(f"Discount code {code.code} has unknown type {code.discount_type}")
        return Decimal("0.00")

    # Don't exceed the subtotal
    return min(discount, subtotal).quantize(CENTS)


class DiscountService:
    """Looks up, validates and redeems discount codes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(self, code: str) -> Optional[DiscountCode]:
        normalized = code.strip().upper()
        if not normalized:
            return None
        result = await self.db.execute(
            select(DiscountCode).where(func.upper(DiscountCode.code) == normalized)
        )
        return result.scalar_one_or_none()

    async def evaluate(
        self,
        code: Optional[str],
        subtotal: Decimal,
        today: Optional[date] = None,
    ) -> DiscountEvaluation:
        if not code or not code.strip():
            return DiscountEvaluation.none()

        normalized = code.strip().upper()
        discount = await self.lookup(normalized)
        if discount is None:
            return DiscountEvaluation.none(normalized, "Invalid discount code")

        reason = self._ineligibility_reason(discount, subtotal, today or datetime.now(timezone.utc).date())
        if reason:
            return DiscountEvaluation.none(normalized, reason)

        amount = calculate_discount(discount, subtotal)
        return DiscountEvaluation(
            code=discount.code,
            discount_amount=amount,
            eligible=True,
            message=f"Discount applied: you save ${amount}",
            discount_code_id=discount.id,
        )

    def _ineligibility_reason(self, discount: DiscountCode, subtotal: Decimal, today: date) -> Optional[str]:
        if not discount.is_active:
            return "This discount code is no longer active"

        # Check validity period
        if today < discount.start_date:
            return "This discount code is not yet active"
        if discount.end_date is not None and today > discount.end_date:
            return "This discount code has expired"

        # Check usage limit
        if discount.usage_limit is not None and discount.times_used >= discount.usage_limit:
            return "This discount code has reached its usage limit"

        # Check minimum order amount
        if subtotal < Decimal(discount.min_order_amount or 0):
            return f"Minimum order amount of ${Decimal(discount.min_order_amount):.2f} required"

        return None

    async def redeem(
        self,
        evaluation: DiscountEvaluation,
        order_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        """
        Consume one use of the code for an order.

        Caller owns the transaction. The increment re-checks the limit and the
        active flag in its WHERE clause so two orders racing for the last use
        cannot both succeed.
        """
        if not evaluation.eligible or evaluation.discount_code_id is None:
            return

        result = await self.db.execute(
            update(DiscountCode)
            .where(
                and_(
                    DiscountCode.id == evaluation.discount_code_id,
                    DiscountCode.is_active == True,
                    or_(
                        DiscountCode.usage_limit.is_(None),
                        DiscountCode.times_used < DiscountCode.usage_limit,
                    ),
                )
            )
            .values(times_used=DiscountCode.times_used + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise DiscountUnavailableError(
                f"Discount code {evaluation.code} is no longer available, please retry",
                {"code": evaluation.code},
            )

        self.db.add(DiscountRedemption(
            discount_code_id=evaluation.discount_code_id,
            order_id=order_id,
            user_id=user_id,
            discount_amount=evaluation.discount_amount,
        ))
        logger.info(f"Discount code {evaluation.code} redeemed on order {order_id}")
