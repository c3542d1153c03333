import logging
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import CheckoutConfig
from app.models.order_requirement import OrderRequirement, RequirementType, ALL_ROLES


logger = logging.getLogger(__name__)


class OrderRequirementsProvider:
    """
    Resolves order-size thresholds.

    Lookup order: active rule for the role, then the active ALL rule, then the
    configured default. Lookup failures fall back to the default so a bad rules
    table never blocks checkout.
    """

    def __init__(self, db: AsyncSession, config: CheckoutConfig):
        self.db = db
        self.config = config

    async def get_minimum_quantity(self, role: str) -> int:
        minimum = await self._lookup(RequirementType.MINIMUM_QUANTITY, role)
        if minimum is None:
            logger.info(f"No minimum quantity rule for role {role}, using default {self.config.default_minimum_quantity}")
            return self.config.default_minimum_quantity
        return minimum

    async def get_wholesale_minimum_quantity(self) -> int:
        minimum = await self._lookup(RequirementType.WHOLESALE_MINIMUM_QUANTITY, None)
        if minimum is None:
            return self.config.default_wholesale_minimum_quantity
        return minimum

    async def _lookup(self, requirement_type: RequirementType, role: Optional[str]) -> Optional[int]:
        roles = [ALL_ROLES] if role is None else [role, ALL_ROLES]
        try:
            # Savepoint: a failed lookup must not abort the caller's transaction
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(OrderRequirement.role, OrderRequirement.minimum_quantity).where(
                        and_(
                            OrderRequirement.requirement_type == requirement_type.value,
                            OrderRequirement.role.in_(roles),
                            OrderRequirement.is_active == True,
                        )
                    ).order_by(OrderRequirement.created_at.desc())
                )
                rules = {}
                for rule_role, minimum in result.all():
                    rules.setdefault(rule_role, minimum)
        except SQLAlchemyError as e:
            logger.warning(f"Order requirement lookup failed, using default: {e}")
            return None

        for candidate in roles:
            if candidate in rules:
                return rules[candidate]
        return None
