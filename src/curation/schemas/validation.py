"""Result shapes returned by the validation engine."""

import enum
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from curation.models.enums import ProductStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorKind(str, enum.Enum):
    """Why an issue was raised.

    SHAPE: the input failed a format/length/required check.
    BUSINESS_RULE: a semantic rule failed (price range, inactive category, ...).
    NOT_FOUND: the referenced id does not exist.
    CAPACITY: a system-wide ceiling (catalog, categories, batch size) was hit.
    """

    SHAPE = "shape"
    BUSINESS_RULE = "business_rule"
    NOT_FOUND = "not_found"
    CAPACITY = "capacity"


class ValidationIssue(BaseModel):
    """One failing check: which field, which rule, and the offending value."""

    field: str
    rule: str
    message: str
    value: Any = None
    kind: ErrorKind = ErrorKind.BUSINESS_RULE
    params: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class StatusTransition(BaseModel):
    """Status change a valid result authorizes."""

    from_status: ProductStatus | None
    to_status: ProductStatus

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """Uniform result of every orchestrator call."""

    is_valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    context: str
    timestamp: datetime = Field(default_factory=utcnow)
    transition: StatusTransition | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def build(
        cls,
        context: str,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue] | None = None,
        transition: StatusTransition | None = None,
        data: dict[str, Any] | None = None,
    ) -> "ValidationResult":
        is_valid = not errors
        return cls(
            is_valid=is_valid,
            errors=errors,
            warnings=warnings or [],
            context=context,
            transition=transition if is_valid else None,
            data=data if is_valid else None,
        )

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def summary(self) -> str:
        return "Validation passed" if self.is_valid else "Validation failed"

    def find(self, field: str | None = None, rule: str | None = None) -> list[ValidationIssue]:
        """Return errors matching the given field and/or rule."""
        return [
            issue
            for issue in self.errors
            if (field is None or issue.field == field) and (rule is None or issue.rule == rule)
        ]


class GateDecision(BaseModel):
    """Publication gate verdict for one product instance."""

    eligible: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)


class BulkOperation(str, enum.Enum):
    PUBLISH = "publish"
    VERIFY = "verify"
    ARCHIVE = "archive"
    RESTORE = "restore"
    DELETE = "delete"
    PURGE = "purge"


class BulkItemResult(BaseModel):
    """Per-id outcome inside a batch."""

    product_id: int
    index: int
    is_valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)


class BulkValidationResult(ValidationResult):
    """Batch result. Items are reported individually and never rolled back together."""

    operation: BulkOperation
    items: list[BulkItemResult] = Field(default_factory=list)

    @property
    def valid_ids(self) -> list[int]:
        return [item.product_id for item in self.items if item.is_valid]

    @property
    def failed_ids(self) -> list[int]:
        return [item.product_id for item in self.items if not item.is_valid]


class ValidationOptions(BaseModel):
    """Per-call knobs for the orchestrator."""

    admin_id: int | None = None
    force: bool = False
    check_daily_limit: bool = False
    max_batch_size: int | None = Field(default=None, gt=0)
