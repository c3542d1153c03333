"""Order placement: validation, pricing, atomic stock commitment and post-commit dispatch."""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import CheckoutConfig, settings
from app.database import async_session_factory
from app.models.order import Order, OrderItem, OrderStatusHistory, OrderStatus, PaymentMethod
from app.models.user import User
from app.schemas.order import OrderCreate, AddressInput
from app.services.catalog_service import CatalogService
from app.services.discount_service import DiscountService, DiscountEvaluation
from app.services.errors import (
    CheckoutError,
    OrderValidationError,
    OrderRequirementError,
    ProductUnavailableError,
    InsufficientStockError,
    ConcurrentStockChangeError,
)
from app.services.inventory_service import InventoryLedger
from app.services.location_service import LocationResolver
from app.services.notification_service import NotificationDispatcher, OrderConfirmation
from app.services.order_requirements_service import OrderRequirementsProvider
from app.services.payment_service import (
    PaymentDispatcher,
    PaymentGateway,
    PaymentResult,
    MethodRoutingGateway,
    normalize_payment_method,
    initial_payment_status,
)
from app.services.pricing_service import PricedLine, PricingBreakdown, calculate_pricing, calculate_subtotal, price_lines
from app.services.wholesale_service import WholesaleEligibilityEvaluator


logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("street", "city", "province", "postal_code")


class CheckoutStage(str, Enum):
    VALIDATING = "VALIDATING"
    PRICING_AND_DISCOUNT = "PRICING_AND_DISCOUNT"
    STOCK_COMMIT = "STOCK_COMMIT"
    PERSISTED = "PERSISTED"
    PAYMENT_DISPATCHED = "PAYMENT_DISPATCHED"
    COMPLETE = "COMPLETE"
    REJECTED = "REJECTED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass(frozen=True)
class CustomerSnapshot:
    id: uuid.UUID
    email: str
    name: str
    wholesale_eligibility: bool


@dataclass
class PlaceOrderResult:
    order_id: uuid.UUID
    order_number: str
    status: str
    payment_status: str
    is_wholesale: bool
    pricing: PricingBreakdown
    discount_code: Optional[str]
    payment_result: Optional[PaymentResult]
    message: str
    stage: CheckoutStage


class OrderService:
    """
    Turns a cart into a committed order.

    Everything up to commit fails closed: any error rolls back the whole
    transaction, so no order, item, stock movement, discount use or wholesale
    upgrade survives a rejected checkout. Payment and notification run after
    commit and fail open: the order is kept and the outcome is recorded.
    """

    def __init__(
        self,
        db: AsyncSession,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        config: Optional[CheckoutConfig] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        notifier: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.config = config or CheckoutConfig.from_settings(settings)
        self.session_factory = session_factory or async_session_factory

        self.locations = LocationResolver(self.config)
        self.requirements = OrderRequirementsProvider(db, self.config)
        self.wholesale = WholesaleEligibilityEvaluator(db, self.requirements)
        self.catalog = CatalogService(db)
        self.discounts = DiscountService(db)
        self.ledger = InventoryLedger(db)
        self.payments = PaymentDispatcher(
            self.session_factory,
            payment_gateway or MethodRoutingGateway(),
            timeout_seconds=self.config.payment_timeout_seconds,
        )
        self.notifier = notifier or NotificationDispatcher()

    # ==================== PLACE ORDER ====================

    async def place_order(self, user_id: uuid.UUID, role: str, request: OrderCreate) -> PlaceOrderResult:
        stage = CheckoutStage.VALIDATING
        try:
            method, quantities = self._validate_request(request)
            shipping = self._address_snapshot(request.shipping_address)
            billing = self._address_snapshot(request.billing_address) if request.billing_address else dict(shipping)

            customer = await self._load_customer(user_id)
            location_id = self.locations.resolve(shipping)

            total_quantity = sum(quantities.values())
            minimum = await self.requirements.get_minimum_quantity(role)
            if total_quantity < minimum:
                raise OrderRequirementError(
                    f"The minimum order quantity is {minimum} units for your account; "
                    f"this order has {total_quantity} units",
                    {"minimum_quantity": minimum, "total_quantity": total_quantity},
                )

            decision = await self.wholesale.evaluate(role, customer.wholesale_eligibility, total_quantity)

            lines = await self._resolve_lines(quantities)
            await self._precheck_stock(lines, location_id)

            stage = CheckoutStage.PRICING_AND_DISCOUNT
            discount = await self.discounts.evaluate(request.discount_code, calculate_subtotal(lines))
            pricing = calculate_pricing(lines, discount.discount_amount, self.config)

            stage = CheckoutStage.STOCK_COMMIT
            order = self._build_order(
                user_id, location_id, lines, total_quantity, pricing, discount,
                method, shipping, billing, decision.is_wholesale, request.notes,
            )
            await self.db.flush()

            # Strictly sequential: one conditional UPDATE at a time on this transaction
            for line in lines:
                if not await self.ledger.decrement_for_order(
                    line.product_id, location_id, line.quantity, order.id, created_by=user_id
                ):
                    raise ConcurrentStockChangeError(
                        f"Insufficient stock for {line.name}: inventory changed while placing your order, please retry",
                        {"product_id": str(line.product_id), "requested": line.quantity},
                    )

            if decision.upgrade_user:
                await self.wholesale.apply_upgrade(user_id)

            await self.discounts.redeem(discount, order.id, user_id)

            await self.db.commit()
            stage = CheckoutStage.PERSISTED

        except CheckoutError as e:
            await self.db.rollback()
            outcome = CheckoutStage.ROLLED_BACK if stage == CheckoutStage.STOCK_COMMIT else CheckoutStage.REJECTED
            logger.info(f"Order for user {user_id} {outcome.value.lower()} at {stage.value}: {e.message}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error placing order for user {user_id} at {stage.value}: {e}", exc_info=True)
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Unexpected error placing order for user {user_id} at {stage.value}: {e}", exc_info=True)
            raise

        logger.info(
            f"Order {order.order_number} placed by user {user_id}: {total_quantity} units, "
            f"total {pricing.total_amount}, wholesale={decision.is_wholesale}"
        )

        # ==================== POST-COMMIT ====================
        payment_result = await self.payments.dispatch(order.id, pricing.total_amount, method, user_id)
        stage = CheckoutStage.PAYMENT_DISPATCHED

        self.notifier.dispatch_order_confirmation(OrderConfirmation(
            customer_email=customer.email,
            customer_name=customer.name,
            order_id=str(order.id),
            order_number=order.order_number,
            total=pricing.total_amount,
            items=price_lines(lines),
            shipping_address=shipping,
        ))
        logger.debug(f"Order {order.order_number} post-commit dispatch done ({stage.value})")
        stage = CheckoutStage.COMPLETE

        if payment_result.success:
            message = "Order placed successfully"
        else:
            message = "Order placed, but payment could not be processed. Our team will follow up to complete payment."

        return PlaceOrderResult(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status,
            payment_status=payment_result.status.value,
            is_wholesale=decision.is_wholesale,
            pricing=pricing,
            discount_code=discount.code if discount.eligible else None,
            payment_result=payment_result,
            message=message,
            stage=stage,
        )

    # ==================== QUERIES ====================

    async def get_order_for_user(self, user_id: uuid.UUID, order_id: uuid.UUID) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.status_history))
            .where(and_(Order.id == order_id, Order.user_id == user_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_orders_for_user(
        self,
        user_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Order], int]:
        """Get the caller's orders, newest first, with the total for pagination."""
        filters = [Order.user_id == user_id]
        if status:
            filters.append(Order.status == status.value)

        total = await self.db.scalar(select(func.count(Order.id)).where(and_(*filters)))

        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.status_history))
            .where(and_(*filters))
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total or 0

    # ==================== INTERNAL ====================

    def _validate_request(self, request: OrderCreate) -> tuple[PaymentMethod, Dict[uuid.UUID, int]]:
        if not request.items:
            raise OrderValidationError("Order must contain at least one item")

        quantities: Dict[uuid.UUID, int] = {}
        for item in request.items:
            if item.quantity <= 0:
                raise OrderValidationError(
                    f"Quantity for product {item.product_id} must be a positive whole number",
                    {"product_id": str(item.product_id)},
                )
            # Repeated products are merged so each is decremented once
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

        self._validate_address(request.shipping_address, "Shipping")
        if request.billing_address is not None:
            self._validate_address(request.billing_address, "Billing")

        if not request.payment_method or not request.payment_method.strip():
            raise OrderValidationError("Payment method is required")
        try:
            method = normalize_payment_method(request.payment_method)
        except ValueError as e:
            raise OrderValidationError(str(e)) from e

        return method, quantities

    def _validate_address(self, address: Optional[AddressInput], label: str) -> None:
        if address is None:
            raise OrderValidationError(f"{label} address is required")
        missing = [name for name in REQUIRED_ADDRESS_FIELDS if not (getattr(address, name) or "").strip()]
        if missing:
            raise OrderValidationError(
                f"{label} address is missing: {', '.join(missing)}",
                {"missing_fields": missing},
            )

    def _address_snapshot(self, address: AddressInput) -> dict:
        snapshot = address.model_dump()
        snapshot["province"] = snapshot["province"].strip().upper()
        return snapshot

    async def _load_customer(self, user_id: uuid.UUID) -> CustomerSnapshot:
        user = await self.db.get(User, user_id)
        if user is None or not user.is_active:
            raise OrderValidationError("User account not found or inactive")
        return CustomerSnapshot(
            id=user.id,
            email=user.email,
            name=user.full_name,
            wholesale_eligibility=user.wholesale_eligibility,
        )

    async def _resolve_lines(self, quantities: Dict[uuid.UUID, int]) -> List[PricedLine]:
        products = await self.catalog.get_products(quantities.keys())

        missing = [str(pid) for pid in quantities if pid not in products]
        if missing:
            raise ProductUnavailableError(
                f"Product not found: {', '.join(missing)}",
                {"product_ids": missing},
            )
        inactive = [products[pid] for pid in quantities if not products[pid].is_active]
        if inactive:
            raise ProductUnavailableError(
                f"Product is no longer available: {', '.join(p.name for p in inactive)}",
                {"product_ids": [str(p.id) for p in inactive]},
            )

        return [
            PricedLine(product_id=pid, name=products[pid].name, unit_price=products[pid].price, quantity=qty)
            for pid, qty in quantities.items()
        ]

    async def _precheck_stock(self, lines: List[PricedLine], location_id: str) -> None:
        """Fast-fail read of current stock. Not a guarantee; decrement_for_order is."""
        for line in lines:
            available = await self.ledger.get_available(line.product_id, location_id)
            if available < line.quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for {line.name}: {available} available, {line.quantity} requested",
                    {"product_id": str(line.product_id), "available": available, "requested": line.quantity},
                )

    def _build_order(
        self,
        user_id: uuid.UUID,
        location_id: str,
        lines: List[PricedLine],
        total_quantity: int,
        pricing: PricingBreakdown,
        discount: DiscountEvaluation,
        method: PaymentMethod,
        shipping: dict,
        billing: dict,
        is_wholesale: bool,
        notes: Optional[str],
    ) -> Order:
        order = Order(
            id=uuid.uuid4(),
            order_number=self._generate_order_number(),
            user_id=user_id,
            status=OrderStatus.PENDING_APPROVAL.value,
            location_id=location_id,
            is_wholesale=is_wholesale,
            total_quantity=total_quantity,
            subtotal=pricing.subtotal,
            discount_amount=pricing.discount_amount,
            shipping_cost=pricing.shipping_cost,
            taxes=pricing.taxes,
            total_amount=pricing.total_amount,
            discount_code=discount.code if discount.eligible else None,
            payment_method=method.value,
            payment_status=initial_payment_status(method).value,
            shipping_address=shipping,
            billing_address=billing,
            notes=notes,
        )
        self.db.add(order)

        for line in lines:
            self.db.add(OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                product_name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                total_amount=line.line_total,
            ))

        self.db.add(OrderStatusHistory(
            order_id=order.id,
            from_status=None,
            to_status=OrderStatus.PENDING_APPROVAL.value,
            changed_by=user_id,
            notes="Order created",
        ))
        return order

    def _generate_order_number(self) -> str:
        """ORD-YYYYMMDD-XXXXXXXX"""
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"ORD-{today}-{uuid.uuid4().hex[:8].upper()}"
