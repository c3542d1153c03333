import uuid
from decimal import Decimal

from app.config import CheckoutConfig
from app.services.pricing_service import PricedLine, calculate_pricing, calculate_subtotal, price_lines


CONFIG = CheckoutConfig(tax_rate=Decimal("0.13"), flat_shipping_cost=Decimal("10.00"))


def _line(price: str, quantity: int, name: str = "Widget") -> PricedLine:
    return PricedLine(product_id=uuid.uuid4(), name=name, unit_price=Decimal(price), quantity=quantity)


def test_total_is_subtotal_minus_discount_plus_shipping_and_taxes():
    lines = [_line("20.00", 3), _line("15.50", 2, "Gadget")]

    pricing = calculate_pricing(lines, Decimal("0"), CONFIG)

    assert pricing.subtotal == Decimal("91.00")
    assert pricing.taxes == Decimal("11.83")
    assert pricing.shipping_cost == Decimal("10.00")
    assert pricing.total_amount == Decimal("112.83")
    assert pricing.total_amount == (
        pricing.subtotal - pricing.discount_amount + pricing.shipping_cost + pricing.taxes
    )


def test_taxes_apply_to_subtotal_before_discount():
    pricing = calculate_pricing([_line("20.00", 5)], Decimal("10.00"), CONFIG)

    assert pricing.subtotal == Decimal("100.00")
    assert pricing.discount_amount == Decimal("10.00")
    assert pricing.taxes == Decimal("13.00")
    assert pricing.total_amount == Decimal("113.00")


def test_discount_is_clamped_to_subtotal():
    pricing = calculate_pricing([_line("4.00", 2)], Decimal("50.00"), CONFIG)

    assert pricing.discount_amount == Decimal("8.00")
    assert pricing.total_amount == pricing.shipping_cost + pricing.taxes


def test_half_cent_taxes_round_up():
    config = CheckoutConfig(tax_rate=Decimal("0.05"), flat_shipping_cost=Decimal("0"))

    pricing = calculate_pricing([_line("0.10", 1)], Decimal("0"), config)

    assert pricing.taxes == Decimal("0.01")


def test_same_cart_prices_identically():
    lines = [_line("19.99", 7), _line("3.35", 11)]

    assert calculate_pricing(lines, Decimal("4.25"), CONFIG) == calculate_pricing(lines, Decimal("4.25"), CONFIG)


def test_subtotal_of_empty_cart_is_zero():
    assert calculate_subtotal([]) == Decimal("0.00")


def test_price_lines_serializes_amounts_as_strings():
    line = _line("2.50", 4)

    summary = price_lines([line])

    assert summary == [{
        "product_id": str(line.product_id),
        "name": "Widget",
        "quantity": 4,
        "unit_price": "2.50",
        "line_total": "10.00",
    }]
