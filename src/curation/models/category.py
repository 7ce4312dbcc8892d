"""Category model with a shallow parent/child hierarchy."""

from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from curation.core.database import Base
from curation.models.base import SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from curation.models.product import Product


class Category(Base, TimestampMixin, SoftDeleteMixin):
    """Category model. At most MAX_ACTIVE_CATEGORIES rows may be active."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )
    icon: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=True,
    )

    # Relationships
    products: Mapped[List["Product"]] = relationship("Product", back_populates="category")

    __table_args__ = (
        Index("idx_categories_active", "active"),
    )
