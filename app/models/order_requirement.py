import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import String, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


ALL_ROLES = "ALL"


class RequirementType(str, Enum):
    MINIMUM_QUANTITY = "MINIMUM_QUANTITY"  # Units per order for a role
    WHOLESALE_MINIMUM_QUANTITY = "WHOLESALE_MINIMUM_QUANTITY"  # Units that qualify a buyer for wholesale


class OrderRequirement(Base):
    """Configurable order threshold, scoped to a role or to ALL roles."""
    __tablename__ = "order_requirements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    role: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ALL_ROLES,
        index=True,
        comment="User role or ALL"
    )
    requirement_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="MINIMUM_QUANTITY, WHOLESALE_MINIMUM_QUANTITY"
    )
    minimum_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<OrderRequirement({self.role} {self.requirement_type}>={self.minimum_quantity})>"
