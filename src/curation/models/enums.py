"""Enumerations shared by models, schemas and services."""

import enum


class ProductStatus(str, enum.Enum):
    """Editorial lifecycle of a product.

    DRAFT -> PENDING_VERIFICATION -> VERIFIED -> PUBLISHED, with ARCHIVED
    reachable from VERIFIED and PUBLISHED.
    """

    DRAFT = "draft"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    PUBLISHED = "published"
    ARCHIVED = "archived"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def is_live(self) -> bool:
        return self is ProductStatus.PUBLISHED


class ImageSourceType(str, enum.Enum):
    """Where a product image comes from."""

    UPLOAD = "upload"
    URL = "url"


class EntityType(str, enum.Enum):
    """Entities that carry a unique slug."""

    PRODUCT = "product"
    CATEGORY = "category"
    MARKETPLACE = "marketplace"
