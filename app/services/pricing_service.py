"""Order pricing.

Pure arithmetic over snapshotted prices so the same cart, catalog and discount
always price the same way:

    subtotal      = sum(unit_price * quantity)
    taxes         = subtotal * tax_rate          (flat rate on the subtotal)
    total_amount  = subtotal - discount_amount + shipping_cost + taxes
"""
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence

from app.config import CheckoutConfig


CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PricedLine:
    product_id: uuid.UUID
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    taxes: Decimal
    total_amount: Decimal


def calculate_subtotal(lines: Sequence[PricedLine]) -> Decimal:
    return sum((line.line_total for line in lines), Decimal("0")).quantize(CENTS)


def calculate_pricing(
    lines: Sequence[PricedLine],
    discount_amount: Decimal,
    config: CheckoutConfig,
) -> PricingBreakdown:
    subtotal = calculate_subtotal(lines)
    # Discount can never push the order below zero
    discount = min(Decimal(discount_amount), subtotal).quantize(CENTS, rounding=ROUND_HALF_UP)
    shipping = Decimal(config.flat_shipping_cost).quantize(CENTS, rounding=ROUND_HALF_UP)
    taxes = (subtotal * Decimal(config.tax_rate)).quantize(CENTS, rounding=ROUND_HALF_UP)

    return PricingBreakdown(
        subtotal=subtotal,
        discount_amount=discount,
        shipping_cost=shipping,
        taxes=taxes,
        total_amount=subtotal - discount + shipping + taxes,
    )


def price_lines(lines: List[PricedLine]) -> List[dict]:
    """Line summaries for notifications and responses."""
    return [
        {
            "product_id": str(line.product_id),
            "name": line.name,
            "quantity": line.quantity,
            "unit_price": str(line.unit_price),
            "line_total": str(line.line_total),
        }
        for line in lines
    ]
