"""Pydantic schemas for engine inputs, snapshots and results."""

from curation.schemas.audit import AuditEvent
from curation.schemas.catalog import CategorySnapshot, LinkSnapshot
from curation.schemas.product import (
    PUBLISHED_LOCKED_FIELDS,
    ProductCreate,
    ProductSnapshot,
    ProductUpdate,
    PublishRequest,
)
from curation.schemas.slug import SlugOptions
from curation.schemas.validation import (
    BulkItemResult,
    BulkOperation,
    BulkValidationResult,
    ErrorKind,
    GateDecision,
    StatusTransition,
    ValidationIssue,
    ValidationOptions,
    ValidationResult,
)

__all__ = [
    "AuditEvent",
    "CategorySnapshot",
    "LinkSnapshot",
    "PUBLISHED_LOCKED_FIELDS",
    "ProductCreate",
    "ProductSnapshot",
    "ProductUpdate",
    "PublishRequest",
    "SlugOptions",
    "BulkItemResult",
    "BulkOperation",
    "BulkValidationResult",
    "ErrorKind",
    "GateDecision",
    "StatusTransition",
    "ValidationIssue",
    "ValidationOptions",
    "ValidationResult",
]
