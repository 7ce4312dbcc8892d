"""Product schemas: operation inputs and read snapshots."""

import re
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from curation.models.enums import ImageSourceType, ProductStatus

SLUG_INPUT_PATTERN = r"^[A-Za-z0-9_-]+$"

DANGEROUS_HTML_PATTERNS = [
    re.compile(r"<script\b[^>]*>(.*?)</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<iframe\b[^>]*>(.*?)</iframe>", re.IGNORECASE | re.DOTALL),
    re.compile(r"onerror\s*=", re.IGNORECASE),
    re.compile(r"onload\s*=", re.IGNORECASE),
    re.compile(r"onclick\s*=", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
]


def _check_description(value: str | None) -> str | None:
    if value is not None and any(p.search(value) for p in DANGEROUS_HTML_PATTERNS):
        raise PydanticCustomError("safe_html", "Description contains potentially dangerous HTML")
    return value


class ProductCreate(BaseModel):
    """Fields an admin may set when creating a product.

    slug is optional: when left out or blank it is generated from the name.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=3, max_length=255)
    slug: str | None = Field(None, min_length=3, max_length=100, pattern=SLUG_INPUT_PATTERN)
    description: str | None = Field(None, max_length=2000)
    market_price: Decimal = Field(..., ge=0, decimal_places=2)
    category_id: int | None = Field(None, gt=0)
    image: str | None = Field(None, max_length=500)
    image_source_type: ImageSourceType = ImageSourceType.UPLOAD

    @field_validator("slug", mode="before")
    @classmethod
    def blank_slug_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("description")
    @classmethod
    def safe_description(cls, value):
        return _check_description(value)


class ProductUpdate(BaseModel):
    """Partial update. Only fields present in the payload are validated."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str | None = Field(None, min_length=3, max_length=255)
    slug: str | None = Field(None, min_length=3, max_length=100, pattern=SLUG_INPUT_PATTERN)
    description: str | None = Field(None, max_length=2000)
    market_price: Decimal | None = Field(None, ge=0, decimal_places=2)
    category_id: int | None = Field(None, gt=0)
    image: str | None = Field(None, max_length=500)
    image_source_type: ImageSourceType | None = None

    @field_validator("description")
    @classmethod
    def safe_description(cls, value):
        return _check_description(value)

    @field_validator("name", "slug", "market_price")
    @classmethod
    def not_null_when_present(cls, value):
        if value is None:
            raise PydanticCustomError("required", "Field cannot be emptied")
        return value

    def changes(self) -> dict:
        """Fields explicitly sent by the caller."""
        return self.model_dump(exclude_unset=True)


# Fields that cannot change while a product is live
PUBLISHED_LOCKED_FIELDS = ("slug", "category_id", "market_price")


class ProductSnapshot(BaseModel):
    """Read-only view of a product row handed to the engine."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str | None = None
    slug: str | None = None
    description: str | None = None
    market_price: Decimal | None = None
    category_id: int | None = None
    # Kept as the raw stored string so unknown values fail closed downstream
    status: str = ProductStatus.DRAFT.value
    image: str | None = None
    image_source_type: str = ImageSourceType.UPLOAD.value
    view_count: int = 0
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    verified_at: datetime | None = None
    published_at: datetime | None = None
    last_price_check: datetime | None = None
    last_link_check: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def status_enum(self) -> ProductStatus | None:
        try:
            return ProductStatus(self.status)
        except ValueError:
            return None

    @property
    def is_published(self) -> bool:
        return self.status == ProductStatus.PUBLISHED.value

    @property
    def is_archived(self) -> bool:
        return self.status == ProductStatus.ARCHIVED.value

    def audit_view(self) -> dict:
        """JSON-safe subset used for audit before/after snapshots."""
        return {
            "name": self.name,
            "slug": self.slug,
            "market_price": str(self.market_price) if self.market_price is not None else None,
            "category_id": self.category_id,
            "status": self.status,
            "image": self.image,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


class PublishRequest(BaseModel):
    """Verify/publish request with the acting admin."""

    product_id: int = Field(..., gt=0)
    admin_id: int | None = Field(None, gt=0)
    force_publish: bool = False
    reason: str | None = Field(None, max_length=500)
