import uuid
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select

from app.models import Order, Payment, PaymentMethod, PaymentStatus
from app.services.payment_service import (
    HttpCardGateway,
    ManualPaymentGateway,
    MethodRoutingGateway,
    PaymentDispatcher,
    PaymentGatewayError,
    initial_payment_status,
    normalize_payment_method,
)
from tests.factories import FakeGateway


@pytest.mark.parametrize("raw, expected", [
    ("credit_card", PaymentMethod.CREDIT_CARD),
    ("Credit Card", PaymentMethod.CREDIT_CARD),
    ("credit-card", PaymentMethod.CREDIT_CARD),
    ("etransfer", PaymentMethod.E_TRANSFER),
    ("E_TRANSFER", PaymentMethod.E_TRANSFER),
    ("btc", PaymentMethod.BITCOIN),
    ("manual", PaymentMethod.MANUAL),
])
def test_normalize_payment_method(raw, expected):
    assert normalize_payment_method(raw) == expected


def test_unknown_payment_method():
    with pytest.raises(ValueError, match="Unsupported payment method: cheque"):
        normalize_payment_method("cheque")


def test_initial_status_depends_on_confirmation_model():
    assert initial_payment_status(PaymentMethod.CREDIT_CARD) == PaymentStatus.PENDING
    assert initial_payment_status(PaymentMethod.BITCOIN) == PaymentStatus.AWAITING_CONFIRMATION


# ==================== Gateways ====================

async def test_manual_gateway_issues_reference():
    result = await ManualPaymentGateway().process_payment(
        uuid.uuid4(), Decimal("10.00"), PaymentMethod.BITCOIN, uuid.uuid4()
    )

    assert result.success
    assert result.status == PaymentStatus.AWAITING_CONFIRMATION
    assert result.transaction_id.startswith("btc-")


async def test_router_sends_cards_to_card_gateway():
    card, manual = FakeGateway(), FakeGateway()
    router = MethodRoutingGateway(card=card, manual=manual)

    await router.process_payment(uuid.uuid4(), Decimal("5.00"), PaymentMethod.CREDIT_CARD, uuid.uuid4())
    await router.process_payment(uuid.uuid4(), Decimal("5.00"), PaymentMethod.E_TRANSFER, uuid.uuid4())

    assert len(card.calls) == 1
    assert len(manual.calls) == 1


async def test_unconfigured_card_gateway_raises():
    with pytest.raises(PaymentGatewayError, match="not configured"):
        await HttpCardGateway(base_url="").process_payment(
            uuid.uuid4(), Decimal("5.00"), PaymentMethod.CREDIT_CARD, uuid.uuid4()
        )


async def test_card_gateway_maps_provider_response(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"id": "ch_123", "approved": False, "message": "Insufficient funds"})

    transport = httpx.MockTransport(handler)
    original_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: original_client(transport=transport, **kwargs))

    result = await HttpCardGateway(base_url="https://payments.test/charges", api_key="sk_test").process_payment(
        uuid.uuid4(), Decimal("25.00"), PaymentMethod.CREDIT_CARD, uuid.uuid4()
    )

    assert seen["auth"] == "Bearer sk_test"
    assert not result.success
    assert result.status == PaymentStatus.FAILED
    assert result.transaction_id == "ch_123"
    assert result.message == "Insufficient funds"


@pytest.mark.parametrize("body", [
    {"id": "ch_1"},
    {"id": "ch_1", "approved": "yes"},
    {"id": "ch_1", "approved": None},
])
async def test_card_gateway_requires_explicit_approval(monkeypatch, body):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
    original_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: original_client(transport=transport, **kwargs))

    result = await HttpCardGateway(base_url="https://payments.test/charges").process_payment(
        uuid.uuid4(), Decimal("25.00"), PaymentMethod.CREDIT_CARD, uuid.uuid4()
    )

    assert not result.success
    assert result.status == PaymentStatus.FAILED
    assert result.transaction_id == "ch_1"


async def test_card_gateway_approved_capture(monkeypatch):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "ch_9", "approved": True}))
    original_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: original_client(transport=transport, **kwargs))

    result = await HttpCardGateway(base_url="https://payments.test/charges").process_payment(
        uuid.uuid4(), Decimal("25.00"), PaymentMethod.CREDIT_CARD, uuid.uuid4()
    )

    assert result.success
    assert result.status == PaymentStatus.COMPLETED
    assert result.message == "Payment captured"


async def test_unconfirmed_capture_is_left_for_reconciliation(seed, session_factory, monkeypatch):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "ch_1"}))
    original_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: original_client(transport=transport, **kwargs))
    order = await _placed_order(session_factory, seed)
    dispatcher = PaymentDispatcher(session_factory, HttpCardGateway(base_url="https://payments.test/charges"))

    result = await dispatcher.dispatch(order.id, order.total_amount, PaymentMethod.CREDIT_CARD, seed.customer.id)

    assert result.status == PaymentStatus.FAILED
    async with session_factory() as session:
        stored = await session.get(Order, order.id)
    assert stored.payment_status == PaymentStatus.FAILED.value
    assert stored.payment_transaction_id == "ch_1"


async def test_card_gateway_error_status_raises(monkeypatch):
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
    original_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: original_client(transport=transport, **kwargs))

    with pytest.raises(PaymentGatewayError, match="502"):
        await HttpCardGateway(base_url="https://payments.test/charges").process_payment(
            uuid.uuid4(), Decimal("25.00"), PaymentMethod.CREDIT_CARD, uuid.uuid4()
        )


# ==================== Dispatcher ====================

async def _placed_order(session_factory, seed) -> Order:
    order = Order(
        order_number=f"ORD-TEST-{uuid.uuid4().hex[:6]}",
        user_id=seed.customer.id,
        location_id="toronto-warehouse",
        total_quantity=5,
        subtotal=Decimal("100.00"),
        total_amount=Decimal("123.00"),
        payment_method=PaymentMethod.CREDIT_CARD.value,
        payment_status=PaymentStatus.PENDING.value,
        shipping_address={},
        billing_address={},
    )
    async with session_factory() as session:
        session.add(order)
        await session.commit()
    return order


async def test_dispatch_timeout_marks_payment_failed(seed, session_factory):
    order = await _placed_order(session_factory, seed)
    dispatcher = PaymentDispatcher(session_factory, FakeGateway(delay=5), timeout_seconds=0.05)

    result = await dispatcher.dispatch(order.id, order.total_amount, PaymentMethod.CREDIT_CARD, seed.customer.id)

    assert result.status == PaymentStatus.FAILED
    assert result.message == "Payment gateway timed out"
    async with session_factory() as session:
        stored = await session.get(Order, order.id)
        payment = await session.scalar(select(Payment).where(Payment.order_id == order.id))
    assert stored.payment_status == PaymentStatus.FAILED.value
    assert payment.message == "Payment gateway timed out"


async def test_dispatch_survives_status_update_failure(seed, session_factory, caplog):
    order = await _placed_order(session_factory, seed)

    def broken_factory():
        raise RuntimeError("connection pool exhausted")

    dispatcher = PaymentDispatcher(broken_factory, FakeGateway())

    result = await dispatcher.dispatch(order.id, order.total_amount, PaymentMethod.CREDIT_CARD, seed.customer.id)

    assert result.success
    assert "Failed to record payment status" in caplog.text
