"""Catalog store: the narrow set of queries the curation engine depends on.

Rows are converted into frozen pydantic snapshots before they leave this
module, so validators never touch ORM state or lazy-load relationships.
Counts used for capacity decisions are always read straight from the
database.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from curation.models.category import Category
from curation.models.enums import EntityType
from curation.models.link import Link
from curation.models.marketplace import Marketplace
from curation.models.product import Product
from curation.schemas.catalog import CategorySnapshot, LinkSnapshot
from curation.schemas.product import ProductSnapshot


class StoreUnavailableError(Exception):
    """Raised when the database or cache cannot answer a query."""

    pass


ENTITY_MODELS = {
    EntityType.PRODUCT: Product,
    EntityType.CATEGORY: Category,
    EntityType.MARKETPLACE: Marketplace,
}

UNIQUE_FIELDS = ("slug", "name")

PRODUCT_WRITABLE_FIELDS = frozenset(
    {
        "name",
        "slug",
        "description",
        "market_price",
        "category_id",
        "status",
        "image",
        "image_source_type",
        "created_by",
        "verified_at",
        "published_at",
        "last_price_check",
        "last_link_check",
        "deleted_at",
    }
)


class CatalogStore:
    """Async SQLAlchemy implementation of the catalog queries."""

    def __init__(self, db: AsyncSession):
        """Initialize catalog store.

        Args:
            db: SQLAlchemy async session
        """
        self.db = db

    async def _scalar(self, stmt) -> Any:
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Catalog query failed") from e
        return result.scalar_one_or_none()

    async def _scalars(self, stmt) -> list[Any]:
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Catalog query failed") from e
        return list(result.scalars().all())

    async def _execute(self, stmt) -> None:
        try:
            await self.db.execute(stmt)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Catalog write failed") from e

    # ==================== Reads ====================

    async def find_product(self, product_id: int, include_deleted: bool = False) -> ProductSnapshot | None:
        """Fetch a product by id.

        Args:
            product_id: Product id
            include_deleted: Also return soft-deleted rows

        Returns:
            Snapshot or None if not found
        """
        stmt = select(Product).where(Product.id == product_id)
        if not include_deleted:
            stmt = stmt.where(Product.deleted_at.is_(None))
        row = await self._scalar(stmt)
        return ProductSnapshot.model_validate(row) if row is not None else None

    async def find_category(self, category_id: int) -> CategorySnapshot | None:
        row = await self._scalar(
            select(Category).where(Category.id == category_id, Category.deleted_at.is_(None))
        )
        return CategorySnapshot.model_validate(row) if row is not None else None

    async def exists_active_category(self, category_id: int) -> bool:
        count = await self._scalar(
            select(func.count(Category.id)).where(
                Category.id == category_id,
                Category.active.is_(True),
                Category.deleted_at.is_(None),
            )
        )
        return bool(count)

    async def find_active_links_for_product(self, product_id: int) -> list[LinkSnapshot]:
        rows = await self._scalars(
            select(Link)
            .where(
                Link.product_id == product_id,
                Link.active.is_(True),
                Link.deleted_at.is_(None),
            )
            .order_by(Link.id)
        )
        return [LinkSnapshot.model_validate(row) for row in rows]

    async def count_active_categories(self) -> int:
        return await self._scalar(
            select(func.count(Category.id)).where(
                Category.active.is_(True),
                Category.deleted_at.is_(None),
            )
        ) or 0

    async def count_active_products(self) -> int:
        """Count non-deleted products regardless of status."""
        return await self._scalar(
            select(func.count(Product.id)).where(Product.deleted_at.is_(None))
        ) or 0

    async def count_by_normalized_field(
        self,
        entity_type: EntityType,
        field: str,
        value: str,
        exclude_id: int | None = None,
    ) -> int:
        """Case-insensitive count of live rows whose field equals value.

        Args:
            entity_type: Which table to search
            field: "slug" or "name"
            value: Value to compare (lowercased before comparison)
            exclude_id: Row id to ignore (the row being updated)

        Raises:
            ValueError: Unsupported entity type or field
        """
        model = ENTITY_MODELS.get(EntityType(entity_type))
        if model is None or field not in UNIQUE_FIELDS:
            raise ValueError(f"Unsupported uniqueness lookup: {entity_type}.{field}")

        column = getattr(model, field)
        stmt = select(func.count(model.id)).where(func.lower(column) == value.lower())
        if hasattr(model, "deleted_at"):
            stmt = stmt.where(model.deleted_at.is_(None))
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        return await self._scalar(stmt) or 0

    async def count_products_created_by(self, admin_id: int, day: date) -> int:
        """Count products an admin created on a given UTC day, deleted ones included."""
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        return await self._scalar(
            select(func.count(Product.id)).where(
                Product.created_by == admin_id,
                Product.created_at >= start,
                Product.created_at < end,
            )
        ) or 0

    # ==================== Writes ====================

    async def insert_product(self, fields: dict[str, Any]) -> ProductSnapshot:
        """Insert a product row and return its snapshot."""
        unknown = set(fields) - PRODUCT_WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {sorted(unknown)}")
        product = Product(**fields)
        try:
            self.db.add(product)
            await self.db.flush()
            await self.db.refresh(product)
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Product insert failed") from e
        return ProductSnapshot.model_validate(product)

    async def update_product_fields(self, product_id: int, fields: dict[str, Any]) -> ProductSnapshot | None:
        """Apply a partial update and return the fresh snapshot."""
        unknown = set(fields) - PRODUCT_WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {sorted(unknown)}")
        if fields:
            await self._execute(
                update(Product)
                .where(Product.id == product_id)
                .values(**fields, updated_at=func.now())
            )
        self.db.expire_all()
        return await self.find_product(product_id, include_deleted=True)

    async def purge_product(self, product_id: int) -> bool:
        """Physically remove a product and its links."""
        await self._execute(delete(Link).where(Link.product_id == product_id))
        try:
            result = await self.db.execute(delete(Product).where(Product.id == product_id))
        except SQLAlchemyError as e:
            raise StoreUnavailableError("Product purge failed") from e
        return result.rowcount > 0

    async def update_category_fields(self, category_id: int, fields: dict[str, Any]) -> CategorySnapshot | None:
        await self._execute(
            update(Category)
            .where(Category.id == category_id)
            .values(**fields, updated_at=func.now())
        )
        self.db.expire_all()
        return await self.find_category(category_id)
