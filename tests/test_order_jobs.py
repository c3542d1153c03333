import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.jobs.order_jobs import flag_unreconciled_payments
from app.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from app.models import Order, PaymentMethod, PaymentStatus


def _order(seed, payment_status: PaymentStatus, age: timedelta, number: str) -> Order:
    return Order(
        id=uuid.uuid4(),
        order_number=number,
        user_id=seed.customer.id,
        location_id="toronto-warehouse",
        total_quantity=5,
        subtotal=Decimal("100.00"),
        total_amount=Decimal("123.00"),
        payment_method=PaymentMethod.E_TRANSFER.value,
        payment_status=payment_status.value,
        shipping_address={},
        billing_address={},
        created_at=datetime.now(timezone.utc) - age,
    )


async def test_flags_failed_and_stale_payments(seed, session_factory, caplog):
    async with session_factory() as session:
        session.add_all([
            _order(seed, PaymentStatus.FAILED, timedelta(minutes=5), "ORD-FAILED"),
            _order(seed, PaymentStatus.AWAITING_CONFIRMATION, timedelta(days=3), "ORD-STALE"),
            _order(seed, PaymentStatus.AWAITING_CONFIRMATION, timedelta(minutes=10), "ORD-RECENT"),
            _order(seed, PaymentStatus.COMPLETED, timedelta(days=3), "ORD-PAID"),
        ])
        await session.commit()

    with caplog.at_level(logging.WARNING, logger="app.jobs.order_jobs"):
        report = await flag_unreconciled_payments(session_factory, max_age_minutes=60 * 24)

    assert report == {"failed": ["ORD-FAILED"], "awaiting_confirmation": ["ORD-STALE"]}
    assert "ORD-STALE" in caplog.text
    assert "ORD-RECENT" not in caplog.text


async def test_nothing_to_reconcile(seed, session_factory):
    report = await flag_unreconciled_payments(session_factory, max_age_minutes=60)

    assert report == {"failed": [], "awaiting_confirmation": []}


async def test_scheduler_registers_reconciliation_job():
    start_scheduler()
    try:
        job = scheduler.get_job("payment_reconciliation")
        assert job is not None
        assert job.name == "Payment Reconciliation"
    finally:
        shutdown_scheduler()
