"""
Payment Service

Post-commit payment dispatch for placed orders:
- Normalize the payment method tag sent by the storefront
- Route card payments to the HTTP card gateway
- Acknowledge bank transfer / crypto payments for manual confirmation
- Record the outcome on the order without ever undoing it
"""

import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

import httpx
from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.order import Order, Payment, PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)


# Storefront spellings of each method, compared after stripping non-letters
_METHOD_ALIASES = {
    "creditcard": PaymentMethod.CREDIT_CARD,
    "card": PaymentMethod.CREDIT_CARD,
    "cc": PaymentMethod.CREDIT_CARD,
    "etransfer": PaymentMethod.E_TRANSFER,
    "interac": PaymentMethod.E_TRANSFER,
    "banktransfer": PaymentMethod.E_TRANSFER,
    "bitcoin": PaymentMethod.BITCOIN,
    "btc": PaymentMethod.BITCOIN,
    "crypto": PaymentMethod.BITCOIN,
    "manual": PaymentMethod.MANUAL,
}

DELAYED_CONFIRMATION_METHODS = {PaymentMethod.E_TRANSFER, PaymentMethod.BITCOIN, PaymentMethod.MANUAL}


def normalize_payment_method(raw: Optional[str]) -> PaymentMethod:
    """Map a free-form method tag to a PaymentMethod. Raises ValueError for unknown tags."""
    key = re.sub(r"[^a-z]", "", (raw or "").lower())
    method = _METHOD_ALIASES.get(key)
    if method is None:
        raise ValueError(f"Unsupported payment method: {raw}")
    return method


def initial_payment_status(method: PaymentMethod) -> PaymentStatus:
    if method in DELAYED_CONFIRMATION_METHODS:
        return PaymentStatus.AWAITING_CONFIRMATION
    return PaymentStatus.PENDING


class PaymentResult(BaseModel):
    """Outcome reported by a gateway."""
    success: bool
    status: PaymentStatus
    transaction_id: Optional[str] = None
    message: str = ""


class PaymentGatewayError(Exception):
    """Gateway unreachable, misconfigured or returned an error."""
    pass


class PaymentGateway(ABC):
    """Adapter contract for anything that can take payment for an order."""

    name = "gateway"

    @abstractmethod
    async def process_payment(
        self,
        order_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        user_id: uuid.UUID,
    ) -> PaymentResult:
        ...


class HttpCardGateway(PaymentGateway):
    """Card capture through an HTTP payment provider."""

    name = "card"

    def __init__(self, base_url: str = None, api_key: str = None, timeout: float = 30.0):
        self.base_url = base_url if base_url is not None else settings.PAYMENT_GATEWAY_URL
        self.api_key = api_key if api_key is not None else settings.PAYMENT_GATEWAY_API_KEY
        self.timeout = timeout

    async def process_payment(self, order_id, amount, method, user_id) -> PaymentResult:
        if not self.base_url:
            raise PaymentGatewayError("Card payment gateway is not configured")

        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "reference": str(order_id),
                    "customer": str(user_id),
                    "amount": str(amount),
                    "currency": "CAD",
                },
                timeout=self.timeout,
            )

        if response.status_code >= 400:
            logger.error(f"Card gateway error for order {order_id}: {response.status_code} - {response.text}")
            raise PaymentGatewayError(f"Card gateway returned {response.status_code}")

        data = response.json()
        # Only an explicit approval counts as captured
        approved = data.get("approved") is True
        if "approved" not in data:
            logger.warning(f"Card gateway response for order {order_id} carried no approval flag")
            message = data.get("message") or "Payment not confirmed by gateway"
        else:
            message = data.get("message") or ("Payment captured" if approved else "Payment declined")
        return PaymentResult(
            success=approved,
            status=PaymentStatus.COMPLETED if approved else PaymentStatus.FAILED,
            transaction_id=data.get("id"),
            message=message,
        )


class ManualPaymentGateway(PaymentGateway):
    """Bank transfer and crypto payments, confirmed later by staff."""

    name = "manual"

    _PREFIXES = {
        PaymentMethod.E_TRANSFER: "etr",
        PaymentMethod.BITCOIN: "btc",
        PaymentMethod.MANUAL: "man",
    }

    async def process_payment(self, order_id, amount, method, user_id) -> PaymentResult:
        prefix = self._PREFIXES.get(method, "man")
        return PaymentResult(
            success=True,
            status=PaymentStatus.AWAITING_CONFIRMATION,
            transaction_id=f"{prefix}-{uuid.uuid4().hex[:12]}",
            message="Payment instructions sent; awaiting confirmation",
        )


class MethodRoutingGateway(PaymentGateway):
    """Sends card payments to the card gateway and everything else to manual confirmation."""

    name = "router"

    def __init__(self, card: PaymentGateway = None, manual: PaymentGateway = None):
        self.card = card or HttpCardGateway()
        self.manual = manual or ManualPaymentGateway()

    async def process_payment(self, order_id, amount, method, user_id) -> PaymentResult:
        if method in DELAYED_CONFIRMATION_METHODS:
            return await self.manual.process_payment(order_id, amount, method, user_id)
        return await self.card.process_payment(order_id, amount, method, user_id)


class PaymentDispatcher:
    """
    Runs payment for a committed order.

    Never raises: gateway errors and timeouts become a FAILED result, and the
    order is kept. The status update runs on its own session because the
    checkout transaction has already been committed and released.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGateway,
        timeout_seconds: float = 15.0,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        order_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        user_id: uuid.UUID,
    ) -> PaymentResult:
        try:
            result = await asyncio.wait_for(
                self.gateway.process_payment(order_id, amount, method, user_id),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Payment for order {order_id} timed out after {self.timeout_seconds}s")
            result = PaymentResult(
                success=False,
                status=PaymentStatus.FAILED,
                message="Payment gateway timed out",
            )
        except Exception as e:
            logger.warning(f"Payment for order {order_id} failed: {e}")
            result = PaymentResult(
                success=False,
                status=PaymentStatus.FAILED,
                message=f"Payment could not be processed: {e}",
            )

        if not result.success:
            result = result.model_copy(update={"status": PaymentStatus.FAILED})

        await self._record(order_id, amount, method, result)
        return result

    async def _record(
        self,
        order_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        result: PaymentResult,
    ) -> None:
        values = {"payment_status": result.status.value}
        if result.transaction_id:
            values["payment_transaction_id"] = result.transaction_id

        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                session.add(Payment(
                    order_id=order_id,
                    amount=amount,
                    method=method.value,
                    status=result.status.value,
                    transaction_id=result.transaction_id,
                    gateway=self.gateway.name,
                    message=result.message,
                ))
                await session.commit()
        except Exception as e:
            # Log but don't retry; the reconciliation job surfaces stale payment states
            logger.error(
                f"Failed to record payment status {result.status.value} for order {order_id}: {e}",
                exc_info=True,
            )
