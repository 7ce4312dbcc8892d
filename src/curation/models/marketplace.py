"""Lookup entities: marketplaces and badges."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from curation.core.database import Base
from curation.models.base import SoftDeleteMixin, TimestampMixin


class Marketplace(Base, TimestampMixin, SoftDeleteMixin):
    """Marketplace a link points to (storefront platform)."""

    __tablename__ = "marketplaces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    icon: Mapped[str | None] = mapped_column(String(100), nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#64748b")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Badge(Base, TimestampMixin, SoftDeleteMixin):
    """Editorial badge attached to products."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)


class MarketplaceBadge(Base, TimestampMixin, SoftDeleteMixin):
    """Seller badge shown next to a link (official store, top seller, ...)."""

    __tablename__ = "marketplace_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(100), nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
