"""
Order Processing Jobs

Background jobs for orders whose payment needs manual follow-up:
- Payments that failed after the order was committed
- Bank transfer / crypto payments never confirmed by staff
"""

import logging
from typing import Dict, Any, Optional
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import get_db_session
from app.models.order import Order, PaymentStatus

logger = logging.getLogger(__name__)

BATCH_LIMIT = 500


async def flag_unreconciled_payments(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    max_age_minutes: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Report orders that need payment reconciliation.

    Orders are never released or cancelled here: inventory stays committed and
    staff follow up on each logged order.
    """
    logger.info("Starting payment reconciliation check...")
    start_time = datetime.now(timezone.utc)
    age = max_age_minutes if max_age_minutes is not None else settings.PAYMENT_RECONCILIATION_AGE_MINUTES
    cutoff_time = start_time - timedelta(minutes=age)

    async with get_db_session(session_factory) as session:
        result = await session.execute(
            select(Order.id, Order.order_number, Order.payment_status, Order.total_amount, Order.created_at)
            .where(
                or_(
                    Order.payment_status == PaymentStatus.FAILED.value,
                    and_(
                        Order.payment_status == PaymentStatus.AWAITING_CONFIRMATION.value,
                        Order.created_at < cutoff_time,
                    ),
                )
            )
            .order_by(Order.created_at.asc())
            .limit(BATCH_LIMIT)
        )
        rows = result.all()

    failed = []
    stale = []
    for row in rows:
        if row.payment_status == PaymentStatus.FAILED.value:
            failed.append(row.order_number)
            logger.warning(f"Order {row.order_number} has a failed payment of {row.total_amount}; needs follow-up")
        else:
            stale.append(row.order_number)
            logger.warning(
                f"Order {row.order_number} payment awaiting confirmation since {row.created_at}; needs follow-up"
            )

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        f"Payment reconciliation check completed: {len(failed)} failed, "
        f"{len(stale)} awaiting confirmation, in {duration:.2f}s"
    )
    return {"failed": failed, "awaiting_confirmation": stale}
