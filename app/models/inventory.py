"""Inventory models for stock management."""
from enum import Enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Integer, DateTime
from sqlalchemy import UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
import uuid

from app.database import Base
from app.db_types import UUIDType


class StockLocation(Base):
    """Warehouse or store that holds stock."""

    __tablename__ = "stock_locations"

    id = Column(String(50), primary_key=True)  # e.g. "toronto-warehouse"
    name = Column(String(200), nullable=False)
    province = Column(String(2))
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<StockLocation {self.id}>"


class StockLevel(Base):
    """On-hand and reserved quantity per product per location."""

    __tablename__ = "stock_levels"
    __table_args__ = (
        UniqueConstraint("product_id", "location_id", name="uq_stock_level_product_location"),
        CheckConstraint("quantity >= 0", name="ck_stock_level_quantity_non_negative"),
        CheckConstraint(
            "reserved_quantity >= 0 AND reserved_quantity <= quantity",
            name="ck_stock_level_reserved_within_quantity"
        ),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)

    product_id = Column(UUIDType, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(String(50), ForeignKey("stock_locations.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)

    # Replenishment thresholds, unset means never reported as low stock
    reorder_point = Column(Integer)
    reorder_quantity = Column(Integer)

    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    product = relationship("Product")
    location = relationship("StockLocation")

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity

    def __repr__(self):
        return f"<StockLevel {self.product_id}@{self.location_id} qty={self.quantity}>"


class StockMovementType(str, Enum):
    """Stock movement type enum."""
    ORDER_PLACEMENT = "ORDER_PLACEMENT"  # Conditional decrement at checkout
    RECEIPT = "RECEIPT"  # First stocking of a location
    ADJUSTMENT_PLUS = "ADJUSTMENT_PLUS"
    ADJUSTMENT_MINUS = "ADJUSTMENT_MINUS"
    RESERVED = "RESERVED"  # Hold placed, on-hand unchanged
    RELEASED = "RELEASED"  # Hold returned to available
    FULFILLED = "FULFILLED"  # Held units shipped out
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"


class StockMovement(Base):
    """Append-only stock movement ledger."""

    __tablename__ = "stock_movements"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)

    movement_type = Column(
        String(50), nullable=False, index=True,
        comment="ORDER_PLACEMENT, RECEIPT, ADJUSTMENT_PLUS, ADJUSTMENT_MINUS, RESERVED, RELEASED, FULFILLED, TRANSFER_OUT, TRANSFER_IN"
    )

    product_id = Column(UUIDType, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(String(50), ForeignKey("stock_locations.id"), nullable=False, index=True)

    # Deltas
    quantity = Column(Integer, nullable=False, default=0)  # Positive for in, negative for out
    reserved_quantity = Column(Integer, nullable=False, default=0)

    # Related documents
    reference_type = Column(String(50))  # order, transfer, adjustment
    reference_id = Column(UUIDType)

    # Actor
    created_by = Column(UUIDType, ForeignKey("users.id"))

    notes = Column(Text)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self):
        return f"<StockMovement {self.movement_type} {self.quantity:+d}>"
