import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserRole
from app.services.order_requirements_service import OrderRequirementsProvider


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WholesaleDecision:
    is_wholesale: bool
    upgrade_user: bool = False


class WholesaleEligibilityEvaluator:
    """Decides whether an order is wholesale and whether it earns the buyer wholesale status."""

    def __init__(self, db: AsyncSession, requirements: OrderRequirementsProvider):
        self.db = db
        self.requirements = requirements

    async def evaluate(self, role: str, already_eligible: bool, total_quantity: int) -> WholesaleDecision:
        if role != UserRole.WHOLESALE_BUYER.value:
            return WholesaleDecision(is_wholesale=False)

        if already_eligible:
            return WholesaleDecision(is_wholesale=True)

        minimum = await self.requirements.get_wholesale_minimum_quantity()
        if total_quantity >= minimum:
            return WholesaleDecision(is_wholesale=True, upgrade_user=True)
        return WholesaleDecision(is_wholesale=False)

    async def apply_upgrade(self, user_id: uuid.UUID) -> bool:
        """
        Flag the user as wholesale-eligible.

        Must run inside the order transaction so the upgrade and the order
        commit or roll back together. Returns False if another order already
        upgraded the user.
        """
        result = await self.db.execute(
            update(User)
            .where(and_(User.id == user_id, User.wholesale_eligibility == False))
            .values(wholesale_eligibility=True, wholesale_approved_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        upgraded = result.rowcount == 1
        if upgraded:
            logger.info(f"User {user_id} upgraded to wholesale")
        return upgraded
