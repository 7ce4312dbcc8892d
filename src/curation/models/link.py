"""Affiliate link model tying a product to a marketplace storefront."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from curation.core.database import Base
from curation.models.base import SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from curation.models.marketplace import Marketplace
    from curation.models.product import Product


class Link(Base, TimestampMixin, SoftDeleteMixin):
    """Link model. Active, non-deleted links gate publication."""

    __tablename__ = "links"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id"),
        nullable=False,
    )
    marketplace_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("marketplaces.id"),
        nullable=False,
    )
    store_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sold_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    affiliate_revenue: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    marketplace_badge_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("marketplace_badges.id"),
        nullable=True,
    )
    last_price_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_validation: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="links")
    marketplace: Mapped["Marketplace"] = relationship("Marketplace")

    __table_args__ = (
        Index("idx_links_product_active", "product_id", "active"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="chk_link_rating_range"),
    )
