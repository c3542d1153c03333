import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class UserRole(str, Enum):
    """Customer-facing roles that drive order requirements."""
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    DISTRIBUTOR = "DISTRIBUTOR"
    WHOLESALE_BUYER = "WHOLESALE_BUYER"
    RETAIL_REFERRER = "RETAIL_REFERRER"


class User(Base):
    """
    Account placing orders.
    Wholesale eligibility is sticky: once granted it is never revoked by checkout.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic info
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    role: Mapped[str] = mapped_column(
        String(50),
        default=UserRole.CUSTOMER.value,
        nullable=False,
        comment="ADMIN, CUSTOMER, DISTRIBUTOR, WHOLESALE_BUYER, RETAIL_REFERRER"
    )

    # Wholesale tier
    wholesale_eligibility: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    wholesale_approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def full_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', role='{self.role}')>"
