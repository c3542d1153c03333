"""
Discount code model.

Supports percentage and fixed-amount codes with an optional usage limit.
"""

import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Date, Integer, Text, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class DiscountType(str, Enum):
    """Discount type enumeration."""
    PERCENTAGE = "PERCENTAGE"  # e.g., 10% off
    FIXED_AMOUNT = "FIXED_AMOUNT"  # e.g., $15 off


class DiscountCode(Base):
    """
    Promo code redeemable at checkout.
    """
    __tablename__ = "discount_codes"
    __table_args__ = (
        CheckConstraint(
            "usage_limit IS NULL OR times_used <= usage_limit",
            name="ck_discount_codes_usage_within_limit"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Unique code, stored upper-case"
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Discount Type & Value
    discount_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=DiscountType.PERCENTAGE.value,
        comment="PERCENTAGE, FIXED_AMOUNT"
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=0,
        comment="Discount value (percentage or amount)"
    )
    max_discount_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Cap on discount for PERCENTAGE type"
    )
    min_order_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=0,
        comment="Minimum subtotal to apply the code"
    )

    # Usage Limits
    usage_limit: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Total times this code can be used (null = unlimited)"
    )
    times_used: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of times the code has been redeemed"
    )

    # Validity Period (inclusive)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Last valid day (null = never expires)"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<DiscountCode(code='{self.code}', used={self.times_used}/{self.usage_limit})>"


class DiscountRedemption(Base):
    """
    One row per order that consumed a discount code.
    """
    __tablename__ = "discount_redemptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    discount_code_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("discount_codes.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<DiscountRedemption(order={self.order_id}, amount={self.discount_amount})>"
