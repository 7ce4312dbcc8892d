"""SQLAlchemy ORM models."""

from curation.models.audit_log import AuditLog
from curation.models.base import SoftDeleteMixin, TimestampMixin
from curation.models.category import Category
from curation.models.enums import EntityType, ImageSourceType, ProductStatus
from curation.models.link import Link
from curation.models.marketplace import Badge, Marketplace, MarketplaceBadge
from curation.models.product import Product

__all__ = [
    "TimestampMixin",
    "SoftDeleteMixin",
    "ProductStatus",
    "ImageSourceType",
    "EntityType",
    "Product",
    "Category",
    "Link",
    "Marketplace",
    "Badge",
    "MarketplaceBadge",
    "AuditLog",
]
