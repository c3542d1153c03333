"""Shared fixtures: a fresh SQLite database per test, seeded catalog, fake collaborators."""
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-checkout-pipeline")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest

from app.config import CheckoutConfig
from app.database import build_engine, build_session_factory, init_db
from app.models import User, UserRole, Product, StockLocation, DiscountCode, DiscountType
from app.services.inventory_service import InventoryLedger
from app.services.order_service import OrderService
from tests.factories import FakeGateway, RecordingNotifier, Seed


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def checkout_config() -> CheckoutConfig:
    return CheckoutConfig(
        province_locations={"ON": "toronto-warehouse", "BC": "vancouver-warehouse"},
        default_location="main-warehouse",
        tax_rate=Decimal("0.13"),
        flat_shipping_cost=Decimal("10.00"),
        default_minimum_quantity=5,
        default_wholesale_minimum_quantity=100,
        payment_timeout_seconds=1.0,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def seed(session_factory) -> Seed:
    async with session_factory() as session:
        customer = User(email="casey@example.com", first_name="Casey", last_name="Tremblay",
                        role=UserRole.CUSTOMER.value)
        buyer = User(email="bulk@example.com", first_name="Bulk", last_name="Buyer",
                     role=UserRole.WHOLESALE_BUYER.value)
        admin = User(email="admin@example.com", first_name="Store", role=UserRole.ADMIN.value)
        widget = Product(sku="WID-001", name="Widget", price=Decimal("20.00"))
        gadget = Product(sku="GAD-001", name="Gadget", price=Decimal("15.50"))
        retired = Product(sku="OLD-001", name="Retired Widget", price=Decimal("9.99"), is_active=False)

        session.add_all([customer, buyer, admin, widget, gadget, retired])
        session.add_all([
            StockLocation(id="toronto-warehouse", name="Toronto", province="ON"),
            StockLocation(id="vancouver-warehouse", name="Vancouver", province="BC"),
            StockLocation(id="main-warehouse", name="Main"),
        ])
        today = datetime.now(timezone.utc).date()
        session.add_all([
            DiscountCode(code="SAVE10", discount_type=DiscountType.PERCENTAGE.value,
                         discount_value=Decimal("10"), start_date=today - timedelta(days=30)),
            DiscountCode(code="ONEUSE", discount_type=DiscountType.FIXED_AMOUNT.value,
                         discount_value=Decimal("5.00"), usage_limit=1, start_date=today - timedelta(days=2)),
            DiscountCode(code="EXPIRED", discount_type=DiscountType.PERCENTAGE.value,
                         discount_value=Decimal("50"), start_date=today - timedelta(days=60),
                         end_date=today - timedelta(days=2)),
        ])
        await session.commit()

        # Opening stock goes through the ledger so movements match levels
        ledger = InventoryLedger(session)
        await ledger.adjust_stock(widget.id, "toronto-warehouse", 200, created_by=admin.id, notes="Opening stock")
        await ledger.adjust_stock(gadget.id, "toronto-warehouse", 8, created_by=admin.id, notes="Opening stock")
        await ledger.adjust_stock(widget.id, "vancouver-warehouse", 5, created_by=admin.id, notes="Opening stock")

    return Seed(customer=customer, buyer=buyer, admin=admin, widget=widget, gadget=gadget, retired=retired)


@pytest.fixture
def make_service(session_factory, checkout_config, gateway, notifier):
    def _make(session, **overrides) -> OrderService:
        return OrderService(
            session,
            session_factory=session_factory,
            config=overrides.get("config", checkout_config),
            payment_gateway=overrides.get("gateway", gateway),
            notifier=overrides.get("notifier", notifier),
        )
    return _make
