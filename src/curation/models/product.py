"""Product model for curated catalog entries."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from curation.core.database import Base
from curation.models.base import SoftDeleteMixin, TimestampMixin
from curation.models.enums import ImageSourceType, ProductStatus

if TYPE_CHECKING:
    from curation.models.category import Category
    from curation.models.link import Link


class Product(Base, TimestampMixin, SoftDeleteMixin):
    """Product model representing a curated affiliate item."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    market_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=ProductStatus.DRAFT.value,
    )
    image: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    image_source_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=ImageSourceType.UPLOAD.value,
    )
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_price_check: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_link_check: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    category: Mapped[Optional["Category"]] = relationship("Category", back_populates="products")
    links: Mapped[List["Link"]] = relationship("Link", back_populates="product")

    __table_args__ = (
        Index("idx_products_slug", "slug"),
        Index("idx_products_status", "status"),
        Index("idx_products_deleted_at", "deleted_at"),
        CheckConstraint("market_price IS NULL OR market_price >= 0", name="chk_product_price_positive"),
        CheckConstraint("view_count >= 0", name="chk_product_view_count_positive"),
    )
