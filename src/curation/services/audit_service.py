"""Append-only audit sink for persisted admin actions."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from curation.models.audit_log import AuditLog
from curation.models.enums import EntityType
from curation.schemas.audit import AuditEvent

logger = logging.getLogger(__name__)


class AuditService:
    """Writes one AuditLog row per event. Recording failures are logged, never raised."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, event: AuditEvent) -> bool:
        """Persist an audit event after the audited write has been committed.

        Args:
            event: What happened, with before/after snapshots

        Returns:
            True if the row was stored
        """
        row = AuditLog(
            admin_id=event.admin_id,
            action=event.action,
            entity_type=event.entity_type.value,
            entity_id=event.entity_id,
            old_values=event.before,
            new_values=event.after,
            changes_summary=event.summary,
            created_at=event.occurred_at,
        )
        try:
            self.db.add(row)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Failed to record audit {event.action} for {event.entity_type.value} {event.entity_id}: {e}"
            )
            return False
        return True

    async def history(self, entity_type: EntityType, entity_id: int, limit: int = 50) -> list[AuditLog]:
        """Most recent audit rows for one entity, newest first."""
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type.value, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
