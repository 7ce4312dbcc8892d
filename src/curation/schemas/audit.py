"""Audit event emitted by the workflow service after a write."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from curation.models.enums import EntityType
from curation.schemas.validation import utcnow


class AuditEvent(BaseModel):
    admin_id: int | None = None
    action: str
    entity_type: EntityType = EntityType.PRODUCT
    entity_id: int
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    summary: str | None = None
    occurred_at: datetime = Field(default_factory=utcnow)
