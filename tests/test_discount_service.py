import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from app.models import DiscountCode, DiscountRedemption, DiscountType
from app.services.discount_service import DiscountService, DiscountEvaluation, calculate_discount
from app.services.errors import DiscountUnavailableError


def _code(discount_type: DiscountType, value: str, cap: str = None) -> DiscountCode:
    return DiscountCode(
        code="TEST",
        discount_type=discount_type.value,
        discount_value=Decimal(value),
        max_discount_amount=Decimal(cap) if cap else None,
        start_date=date.today(),
    )


# ==================== calculate_discount ====================

def test_percentage_discount():
    assert calculate_discount(_code(DiscountType.PERCENTAGE, "10"), Decimal("100.00")) == Decimal("10.00")


def test_percentage_discount_respects_cap():
    code = _code(DiscountType.PERCENTAGE, "25", cap="15.00")

    assert calculate_discount(code, Decimal("200.00")) == Decimal("15.00")


def test_fixed_discount_never_exceeds_subtotal():
    assert calculate_discount(_code(DiscountType.FIXED_AMOUNT, "30.00"), Decimal("12.50")) == Decimal("12.50")


def test_unknown_type_gives_nothing():
    code = _code(DiscountType.PERCENTAGE, "10")
    code.discount_type = "BOGO"

    assert calculate_discount(code, Decimal("50.00")) == Decimal("0.00")


# ==================== evaluate ====================

async def test_evaluate_valid_code_is_case_insensitive(db, seed):
    evaluation = await DiscountService(db).evaluate("  save10 ", Decimal("100.00"))

    assert evaluation.eligible
    assert evaluation.code == "SAVE10"
    assert evaluation.discount_amount == Decimal("10.00")


async def test_evaluate_without_code(db, seed):
    evaluation = await DiscountService(db).evaluate(None, Decimal("100.00"))

    assert not evaluation.eligible
    assert evaluation.discount_amount == Decimal("0.00")


async def test_unknown_code_is_not_an_error(db, seed):
    evaluation = await DiscountService(db).evaluate("NOPE", Decimal("100.00"))

    assert not evaluation.eligible
    assert evaluation.message == "Invalid discount code"


async def test_expired_code(db, seed):
    evaluation = await DiscountService(db).evaluate("EXPIRED", Decimal("100.00"))

    assert not evaluation.eligible
    assert evaluation.message == "This discount code has expired"


async def test_code_not_yet_started(db, seed):
    evaluation = await DiscountService(db).evaluate(
        "SAVE10", Decimal("100.00"), today=date.today() - timedelta(days=365)
    )

    assert evaluation.message == "This discount code is not yet active"


async def test_minimum_order_amount(db, seed):
    await db.execute(update(DiscountCode).where(DiscountCode.code == "SAVE10").values(min_order_amount=150))
    await db.commit()

    evaluation = await DiscountService(db).evaluate("SAVE10", Decimal("100.00"))

    assert not evaluation.eligible
    assert evaluation.message == "Minimum order amount of $150.00 required"


async def test_exhausted_code(db, seed):
    await db.execute(update(DiscountCode).where(DiscountCode.code == "ONEUSE").values(times_used=1))
    await db.commit()

    evaluation = await DiscountService(db).evaluate("ONEUSE", Decimal("100.00"))

    assert evaluation.message == "This discount code has reached its usage limit"


# ==================== redeem ====================

async def test_redeem_increments_usage_and_records_redemption(db, seed):
    service = DiscountService(db)
    evaluation = await service.evaluate("ONEUSE", Decimal("40.00"))
    order_id = uuid.uuid4()

    await service.redeem(evaluation, order_id, seed.customer.id)
    await db.commit()

    times_used = await db.scalar(select(DiscountCode.times_used).where(DiscountCode.code == "ONEUSE"))
    redemption = await db.scalar(select(DiscountRedemption).where(DiscountRedemption.order_id == order_id))
    assert times_used == 1
    assert redemption.discount_amount == Decimal("5.00")


async def test_redeem_refuses_past_usage_limit(db, seed):
    service = DiscountService(db)
    first = await service.evaluate("ONEUSE", Decimal("40.00"))
    second = await service.evaluate("ONEUSE", Decimal("40.00"))
    assert first.eligible and second.eligible

    await service.redeem(first, uuid.uuid4(), seed.customer.id)
    await db.commit()

    with pytest.raises(DiscountUnavailableError) as exc:
        await service.redeem(second, uuid.uuid4(), seed.customer.id)

    assert "no longer available" in exc.value.message
    times_used = await db.scalar(select(DiscountCode.times_used).where(DiscountCode.code == "ONEUSE"))
    assert times_used == 1


async def test_redeem_ignores_ineligible_evaluation(db, seed):
    await DiscountService(db).redeem(DiscountEvaluation.none(), uuid.uuid4(), seed.customer.id)

    assert await db.scalar(select(DiscountRedemption.id)) is None
