import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import Product


@dataclass(frozen=True)
class ProductSnapshot:
    """Product fields captured at checkout, detached from the session."""
    id: uuid.UUID
    name: str
    price: Decimal
    is_active: bool


class CatalogService:
    """Read-only product lookups used by checkout."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_products(self, product_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, ProductSnapshot]:
        """Batch lookup. Ids with no product are absent from the result."""
        ids = list(set(product_ids))
        if not ids:
            return {}

        result = await self.db.execute(
            select(Product.id, Product.name, Product.price, Product.is_active).where(Product.id.in_(ids))
        )
        return {
            row.id: ProductSnapshot(id=row.id, name=row.name, price=Decimal(row.price), is_active=row.is_active)
            for row in result.all()
        }
