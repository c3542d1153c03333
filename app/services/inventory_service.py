"""Inventory ledger: stock levels, conditional decrements and movement history."""
import logging
from dataclasses import dataclass
from typing import Optional, List, Sequence
import uuid

from sqlalchemy import select, func, and_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.inventory import StockLocation, StockLevel, StockMovement, StockMovementType
from app.services.errors import InventoryError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockRequest:
    """Quantity of one product, used by reserve/fulfill/release."""
    product_id: uuid.UUID
    quantity: int


class InventoryLedger:
    """
    Owns every stock mutation.

    Each change is a single conditional UPDATE whose WHERE clause carries the
    guard (enough available stock, enough reserved stock, non-negative result),
    so concurrent writers are serialized by the database row update and the
    affected-row count tells us whether the guard still held. Every successful
    change appends a StockMovement row.

    decrement_for_order() runs inside the caller's transaction. The admin
    operations (adjust, reserve, fulfill, release, transfer) commit their own
    unit of work and roll it back entirely on failure.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== READS ====================

    async def get_available(self, product_id: uuid.UUID, location_id: str) -> int:
        """On-hand minus reserved. A missing stock record means nothing is available."""
        available = await self.db.scalar(
            select(StockLevel.quantity - StockLevel.reserved_quantity).where(
                and_(
                    StockLevel.product_id == product_id,
                    StockLevel.location_id == location_id,
                )
            )
        )
        return available or 0

    async def get_level(self, product_id: uuid.UUID, location_id: str) -> Optional[StockLevel]:
        result = await self.db.execute(
            select(StockLevel)
            .where(and_(StockLevel.product_id == product_id, StockLevel.location_id == location_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_levels(self, product_id: uuid.UUID) -> List[StockLevel]:
        result = await self.db.execute(
            select(StockLevel)
            .where(StockLevel.product_id == product_id)
            .order_by(StockLevel.location_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_location_inventory(self, location_id: str) -> List[StockLevel]:
        """Every stock record held at one location."""
        if await self.db.get(StockLocation, location_id) is None:
            raise InventoryError(f"Unknown stock location: {location_id}")

        result = await self.db.execute(
            select(StockLevel)
            .where(StockLevel.location_id == location_id)
            .order_by(StockLevel.product_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_low_stock(self, location_id: Optional[str] = None) -> List[StockLevel]:
        """
        Stock records at or below their reorder point, lowest available first.

        Records without a reorder point are never reported.
        """
        available = StockLevel.quantity - StockLevel.reserved_quantity
        conditions = [
            StockLevel.reorder_point.is_not(None),
            available <= StockLevel.reorder_point,
        ]
        if location_id:
            conditions.append(StockLevel.location_id == location_id)

        result = await self.db.execute(
            select(StockLevel)
            .options(selectinload(StockLevel.product))
            .where(and_(*conditions))
            .order_by(available.asc(), StockLevel.location_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_movements(
        self,
        product_id: uuid.UUID,
        location_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[StockMovement]:
        conditions = [StockMovement.product_id == product_id]
        if location_id:
            conditions.append(StockMovement.location_id == location_id)

        result = await self.db.execute(
            select(StockMovement)
            .where(and_(*conditions))
            .order_by(StockMovement.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def ledger_balance(self, product_id: uuid.UUID, location_id: str) -> int:
        """Sum of on-hand deltas recorded for a product at a location."""
        total = await self.db.scalar(
            select(func.coalesce(func.sum(StockMovement.quantity), 0)).where(
                and_(
                    StockMovement.product_id == product_id,
                    StockMovement.location_id == location_id,
                )
            )
        )
        return int(total or 0)

    # ==================== CHECKOUT ====================

    async def decrement_for_order(
        self,
        product_id: uuid.UUID,
        location_id: str,
        quantity: int,
        order_id: uuid.UUID,
        created_by: Optional[uuid.UUID] = None,
    ) -> bool:
        """
        Conditionally take `quantity` units for an order.

        Returns False when the available quantity no longer covers the request
        at the instant of the update. Does not commit; the caller must abort its
        transaction on False.
        """
        applied = await self._conditional_update(
            product_id,
            location_id,
            guard=(StockLevel.quantity - StockLevel.reserved_quantity) >= quantity,
            quantity=StockLevel.quantity - quantity,
        )
        if not applied:
            return False

        self._add_movement(
            StockMovementType.ORDER_PLACEMENT,
            product_id,
            location_id,
            quantity=-quantity,
            reference_type="order",
            reference_id=order_id,
            created_by=created_by,
        )
        return True

    # ==================== ADMIN OPERATIONS ====================

    async def adjust_stock(
        self,
        product_id: uuid.UUID,
        location_id: str,
        change: int,
        created_by: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> StockLevel:
        """Manual +/- correction. The first positive adjustment creates the stock record."""
        if change == 0:
            raise InventoryError("Adjustment quantity cannot be zero")

        try:
            applied = await self._conditional_update(
                product_id,
                location_id,
                guard=(StockLevel.quantity + change) >= StockLevel.reserved_quantity,
                quantity=StockLevel.quantity + change,
            )
            if applied:
                movement_type = StockMovementType.ADJUSTMENT_PLUS if change > 0 else StockMovementType.ADJUSTMENT_MINUS
            else:
                if await self.get_level(product_id, location_id) is not None:
                    raise InventoryError(
                        f"Adjustment of {change} would leave stock below zero or below reserved quantity",
                        {"product_id": str(product_id), "location_id": location_id},
                    )
                if change < 0:
                    raise InventoryError(
                        "Cannot apply a negative adjustment to a product with no stock record",
                        {"product_id": str(product_id), "location_id": location_id},
                    )
                await self._ensure_location(location_id)
                self.db.add(StockLevel(product_id=product_id, location_id=location_id, quantity=change))
                movement_type = StockMovementType.RECEIPT

            self._add_movement(
                movement_type,
                product_id,
                location_id,
                quantity=change,
                reference_type="adjustment",
                created_by=created_by,
                notes=notes,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Stock adjusted by {change:+d} for product {product_id} at {location_id}")
        return await self.get_level(product_id, location_id)

    async def set_reorder_levels(
        self,
        product_id: uuid.UUID,
        location_id: str,
        reorder_point: Optional[int],
        reorder_quantity: Optional[int] = None,
    ) -> StockLevel:
        """Set or clear the replenishment thresholds of an existing stock record."""
        for value in (reorder_point, reorder_quantity):
            if value is not None and value < 0:
                raise InventoryError("Reorder levels cannot be negative")

        result = await self.db.execute(
            update(StockLevel)
            .where(and_(StockLevel.product_id == product_id, StockLevel.location_id == location_id))
            .values(reorder_point=reorder_point, reorder_quantity=reorder_quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise InventoryError(
                f"No stock record for product {product_id} at {location_id}",
                {"product_id": str(product_id), "location_id": location_id},
            )
        await self.db.commit()

        logger.info(f"Reorder point for product {product_id} at {location_id} set to {reorder_point}")
        return await self.get_level(product_id, location_id)

    async def reserve_stock(
        self,
        items: Sequence[StockRequest],
        location_id: str,
        reference_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> None:
        """Place a hold on available stock. All items are held or none are."""
        await self._apply_batch(
            items,
            location_id,
            movement_type=StockMovementType.RESERVED,
            reference_id=reference_id,
            created_by=created_by,
        )

    async def fulfill_reservation(
        self,
        items: Sequence[StockRequest],
        location_id: str,
        reference_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> None:
        """Ship held units: on-hand and reserved both drop by the quantity."""
        await self._apply_batch(
            items,
            location_id,
            movement_type=StockMovementType.FULFILLED,
            reference_id=reference_id,
            created_by=created_by,
        )

    async def release_reservation(
        self,
        items: Sequence[StockRequest],
        location_id: str,
        reference_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> None:
        """Return held units to available stock."""
        await self._apply_batch(
            items,
            location_id,
            movement_type=StockMovementType.RELEASED,
            reference_id=reference_id,
            created_by=created_by,
        )

    async def transfer_stock(
        self,
        product_id: uuid.UUID,
        from_location_id: str,
        to_location_id: str,
        quantity: int,
        created_by: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> uuid.UUID:
        """
        Move available units between locations in one transaction.

        The debit and the credit commit together; if the credit fails the
        debit is rolled back with it.
        """
        if quantity <= 0:
            raise InventoryError("Transfer quantity must be positive")
        if from_location_id == to_location_id:
            raise InventoryError("Source and destination locations must differ")

        transfer_id = uuid.uuid4()
        try:
            debited = await self._conditional_update(
                product_id,
                from_location_id,
                guard=(StockLevel.quantity - StockLevel.reserved_quantity) >= quantity,
                quantity=StockLevel.quantity - quantity,
            )
            if not debited:
                available = await self.get_available(product_id, from_location_id)
                raise InventoryError(
                    f"Insufficient stock at {from_location_id}: {available} available, {quantity} requested",
                    {"product_id": str(product_id), "available": available},
                )
            self._add_movement(
                StockMovementType.TRANSFER_OUT,
                product_id,
                from_location_id,
                quantity=-quantity,
                reference_type="transfer",
                reference_id=transfer_id,
                created_by=created_by,
                notes=notes,
            )

            await self._credit(product_id, to_location_id, quantity)
            self._add_movement(
                StockMovementType.TRANSFER_IN,
                product_id,
                to_location_id,
                quantity=quantity,
                reference_type="transfer",
                reference_id=transfer_id,
                created_by=created_by,
                notes=notes,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Transferred {quantity} of product {product_id} from {from_location_id} to {to_location_id} "
            f"(transfer {transfer_id})"
        )
        return transfer_id

    # ==================== INTERNAL ====================

    async def _conditional_update(self, product_id: uuid.UUID, location_id: str, guard, **values) -> bool:
        result = await self.db.execute(
            update(StockLevel)
            .where(
                and_(
                    StockLevel.product_id == product_id,
                    StockLevel.location_id == location_id,
                    guard,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _credit(self, product_id: uuid.UUID, location_id: str, quantity: int) -> None:
        credited = await self._conditional_update(
            product_id,
            location_id,
            guard=StockLevel.quantity >= 0,
            quantity=StockLevel.quantity + quantity,
        )
        if not credited:
            await self._ensure_location(location_id)
            self.db.add(StockLevel(product_id=product_id, location_id=location_id, quantity=quantity))
            await self.db.flush()

    async def _ensure_location(self, location_id: str) -> None:
        location = await self.db.get(StockLocation, location_id)
        if location is None or not location.is_active:
            raise InventoryError(f"Unknown or inactive stock location: {location_id}")

    async def _apply_batch(
        self,
        items: Sequence[StockRequest],
        location_id: str,
        movement_type: StockMovementType,
        reference_id: Optional[uuid.UUID],
        created_by: Optional[uuid.UUID],
    ) -> None:
        if not items:
            raise InventoryError("No items given")

        try:
            for item in items:
                if item.quantity <= 0:
                    raise InventoryError(f"Quantity for product {item.product_id} must be positive")

                n = item.quantity
                if movement_type == StockMovementType.RESERVED:
                    guard = (StockLevel.quantity - StockLevel.reserved_quantity) >= n
                    values = {"reserved_quantity": StockLevel.reserved_quantity + n}
                    deltas = (0, n)
                elif movement_type == StockMovementType.FULFILLED:
                    guard = StockLevel.reserved_quantity >= n
                    values = {
                        "quantity": StockLevel.quantity - n,
                        "reserved_quantity": StockLevel.reserved_quantity - n,
                    }
                    deltas = (-n, -n)
                else:
                    guard = StockLevel.reserved_quantity >= n
                    values = {"reserved_quantity": StockLevel.reserved_quantity - n}
                    deltas = (0, -n)

                if not await self._conditional_update(item.product_id, location_id, guard, **values):
                    held = "available" if movement_type == StockMovementType.RESERVED else "reserved"
                    raise InventoryError(
                        f"Not enough {held} stock of product {item.product_id} at {location_id} for {n} units",
                        {"product_id": str(item.product_id), "quantity": n},
                    )

                self._add_movement(
                    movement_type,
                    item.product_id,
                    location_id,
                    quantity=deltas[0],
                    reserved_quantity=deltas[1],
                    reference_type="reservation",
                    reference_id=reference_id,
                    created_by=created_by,
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"{movement_type.value} {len(items)} item(s) at {location_id} (reference {reference_id})")

    def _add_movement(
        self,
        movement_type: StockMovementType,
        product_id: uuid.UUID,
        location_id: str,
        quantity: int,
        reserved_quantity: int = 0,
        reference_type: Optional[str] = None,
        reference_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> StockMovement:
        movement = StockMovement(
            movement_type=movement_type.value,
            product_id=product_id,
            location_id=location_id,
            quantity=quantity,
            reserved_quantity=reserved_quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            created_by=created_by,
            notes=notes,
        )
        self.db.add(movement)
        return movement
