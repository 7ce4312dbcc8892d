"""Read snapshots for categories and links."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class CategorySnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    slug: str
    active: bool = False
    sort_order: int = 0
    parent_id: int | None = None
    deleted_at: datetime | None = None

    @property
    def is_usable(self) -> bool:
        """Active and not soft-deleted."""
        return self.active and self.deleted_at is None


class LinkSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    product_id: int
    marketplace_id: int
    store_name: str
    price: Decimal = Decimal("0.00")
    url: str | None = None
    active: bool = True
    deleted_at: datetime | None = None
