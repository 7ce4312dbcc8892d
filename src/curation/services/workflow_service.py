"""Product workflow: validate, persist, invalidate, audit.

Each operation asks ProductValidator for a decision, refuses to continue when
it is invalid, writes through CatalogStore, commits, drops exactly the cache
entries the write affected and finally records one audit event.

Capacity checks and the write are not atomic: two admins creating the 300th
product at the same moment can both pass validation. The window is accepted
given the low write concurrency of the admin panel.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from curation.models.enums import EntityType, ProductStatus
from curation.schemas.audit import AuditEvent
from curation.schemas.catalog import CategorySnapshot
from curation.schemas.product import ProductSnapshot, PublishRequest
from curation.schemas.validation import (
    BulkOperation,
    BulkValidationResult,
    ValidationOptions,
    ValidationResult,
)
from curation.services.audit_service import AuditService
from curation.services.cache_service import CacheBackend
from curation.services.catalog_store import CatalogStore, StoreUnavailableError
from curation.services.product_validator import ProductValidator

logger = logging.getLogger(__name__)


class WorkflowRejectedError(Exception):
    """Raised when an operation is applied although its validation failed."""

    def __init__(self, result: ValidationResult):
        self.result = result
        rules = ", ".join(f"{e.field}:{e.rule}" for e in result.errors) or "no details"
        super().__init__(f"{result.context} rejected ({rules})")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _warning_rules(result: ValidationResult) -> list[str]:
    return [f"{w.field}:{w.rule}" for w in result.warnings]


class ProductWorkflowService:
    """Applies validated product and category operations."""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheBackend,
        validator: ProductValidator | None = None,
        audit: AuditService | None = None,
    ):
        """Initialize workflow service.

        Args:
            db: SQLAlchemy async session; committed after every operation
            cache: Cache facade shared with the validator
            validator: Prebuilt validator (built from db and cache when None)
            audit: Audit sink (AuditService on the same session when None)
        """
        self.db = db
        self.store = CatalogStore(db)
        self.validator = validator or ProductValidator.create(self.store, cache)
        self.uniqueness = self.validator.uniqueness
        self.audit = audit or AuditService(db)

    # ==================== Plumbing ====================

    def _ensure_valid(self, result: ValidationResult) -> None:
        if not result.is_valid:
            logger.warning(f"Rejected {result.context}: {[f'{e.field}:{e.rule}' for e in result.errors]}")
            raise WorkflowRejectedError(result)

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreUnavailableError("Commit failed") from e

    async def _audit(
        self,
        action: str,
        entity_id: int,
        admin_id: int | None,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        summary: str,
        entity_type: EntityType = EntityType.PRODUCT,
    ) -> None:
        await self.audit.record(
            AuditEvent(
                admin_id=admin_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                before=before,
                after=after,
                summary=summary,
            )
        )

    async def _forget_product_keys(self, *products: ProductSnapshot | None) -> None:
        slugs = [p.slug for p in products if p is not None]
        names = [p.name for p in products if p is not None]
        await self.uniqueness.forget_slugs(EntityType.PRODUCT, *slugs)
        await self.uniqueness.forget_names(EntityType.PRODUCT, *names)

    async def _change_status(
        self,
        action: str,
        product_id: int,
        result: ValidationResult,
        admin_id: int | None,
        extra_fields: dict[str, Any] | None = None,
        forget_keys: bool = False,
    ) -> ProductSnapshot:
        before = await self.store.find_product(product_id, include_deleted=True)
        target = result.transition.to_status
        fields = {"status": target.value, **(extra_fields or {})}

        after = await self.store.update_product_fields(product_id, fields)
        await self._commit()
        if forget_keys:
            await self._forget_product_keys(before, after)

        after_view = after.audit_view()
        if result.warnings:
            after_view["warnings"] = _warning_rules(result)
        logger.info(f"Product {product_id} {action}: {before.status} -> {target.value}")
        await self._audit(
            action,
            product_id,
            admin_id,
            before.audit_view(),
            after_view,
            f"{before.status} -> {target.value}",
        )
        return after

    # ==================== Create / update ====================

    async def create_product(
        self,
        data: dict[str, Any],
        admin_id: int,
        check_daily_limit: bool = True,
    ) -> ProductSnapshot:
        """Create a DRAFT product.

        Raises:
            WorkflowRejectedError: Validation failed
        """
        result = await self.validator.validate_create(
            data,
            ValidationOptions(admin_id=admin_id, check_daily_limit=check_daily_limit),
        )
        self._ensure_valid(result)

        fields = {**result.data, "status": ProductStatus.DRAFT.value, "created_by": admin_id}
        product = await self.store.insert_product(fields)
        await self._commit()

        await self.uniqueness.forget_slugs(EntityType.PRODUCT, product.slug)
        await self.uniqueness.forget_names(EntityType.PRODUCT, product.name)
        await self.uniqueness.forget_daily_count(admin_id, _now().date())

        logger.info(f"Product {product.id} created by admin {admin_id} with slug {product.slug}")
        await self._audit("create", product.id, admin_id, None, product.audit_view(), f"Created {product.name}")
        return product

    async def update_product(self, product_id: int, data: dict[str, Any], admin_id: int) -> ProductSnapshot:
        """Apply a partial update.

        Raises:
            WorkflowRejectedError: Validation failed
        """
        result = await self.validator.validate_update(product_id, data, ValidationOptions(admin_id=admin_id))
        self._ensure_valid(result)

        before = await self.store.find_product(product_id)
        if not result.data:
            return before

        after = await self.store.update_product_fields(product_id, result.data)
        await self._commit()

        if before.slug != after.slug:
            await self.uniqueness.forget_slugs(EntityType.PRODUCT, before.slug, after.slug)
        if before.name != after.name:
            await self.uniqueness.forget_names(EntityType.PRODUCT, before.name, after.name)

        logger.info(f"Product {product_id} updated by admin {admin_id}: {sorted(result.data)}")
        await self._audit(
            "update",
            product_id,
            admin_id,
            before.audit_view(),
            after.audit_view(),
            f"Updated {', '.join(sorted(result.data))}",
        )
        return after

    # ==================== Lifecycle ====================

    async def submit(self, product_id: int, admin_id: int) -> ProductSnapshot:
        result = await self.validator.validate_submit(product_id)
        self._ensure_valid(result)
        return await self._change_status("submit", product_id, result, admin_id)

    async def verify(self, request: PublishRequest) -> ProductSnapshot:
        result = await self.validator.validate_verify(request)
        self._ensure_valid(result)
        return await self._change_status(
            "verify", request.product_id, result, request.admin_id, {"verified_at": _now()}
        )

    async def publish(self, request: PublishRequest) -> ProductSnapshot:
        """Publish a VERIFIED product.

        With force_publish the gate warnings are kept in the audit entry's
        after snapshot under "warnings".
        """
        result = await self.validator.validate_publish(request)
        self._ensure_valid(result)
        return await self._change_status(
            "publish", request.product_id, result, request.admin_id, {"published_at": _now()}
        )

    async def archive(self, product_id: int, admin_id: int) -> ProductSnapshot:
        result = await self.validator.validate_archive(product_id)
        self._ensure_valid(result)
        return await self._change_status("archive", product_id, result, admin_id)

    async def restore(self, product_id: int, admin_id: int) -> ProductSnapshot:
        """Bring an archived or deleted product back as PENDING_VERIFICATION."""
        result = await self.validator.validate_restore(product_id)
        self._ensure_valid(result)
        return await self._change_status(
            "restore", product_id, result, admin_id, {"deleted_at": None}, forget_keys=True
        )

    async def delete(self, product_id: int, admin_id: int, force: bool = False) -> ProductSnapshot:
        """Soft delete: the row stays, deleted_at is set."""
        result = await self.validator.validate_delete(product_id, force, ValidationOptions(admin_id=admin_id, force=force))
        self._ensure_valid(result)

        before = await self.store.find_product(product_id, include_deleted=True)
        if before.is_deleted:
            return before

        after = await self.store.update_product_fields(product_id, {"deleted_at": _now()})
        await self._commit()
        await self._forget_product_keys(before)

        after_view = after.audit_view()
        if result.warnings:
            after_view["warnings"] = _warning_rules(result)
        logger.info(f"Product {product_id} deleted by admin {admin_id} (force={force})")
        await self._audit("delete", product_id, admin_id, before.audit_view(), after_view, "Moved to trash")
        return after

    async def purge(self, product_id: int, admin_id: int, force: bool = False) -> bool:
        """Remove the product row and its links permanently."""
        result = await self.validator.validate_purge(product_id, force)
        self._ensure_valid(result)

        before = await self.store.find_product(product_id, include_deleted=True)
        removed = await self.store.purge_product(product_id)
        await self._commit()
        await self._forget_product_keys(before)

        logger.info(f"Product {product_id} purged by admin {admin_id}")
        await self._audit("purge", product_id, admin_id, before.audit_view(), None, "Permanently deleted")
        return removed

    # ==================== Bulk ====================

    async def apply_bulk(
        self,
        product_ids: list[int],
        operation: BulkOperation | str,
        options: ValidationOptions,
    ) -> BulkValidationResult:
        """Validate a batch and apply every valid item.

        Items are applied one by one and each is committed on its own; a
        failing item is reported and skipped, never rolled back with the rest.
        """
        operation = BulkOperation(operation)
        result = await self.validator.validate_bulk(product_ids, operation, options)
        if result.errors:
            self._ensure_valid(result)

        for item in result.items:
            if not item.is_valid:
                continue
            try:
                await self._apply_item(item.product_id, operation, options)
            except WorkflowRejectedError as e:
                # State changed between batch validation and this item
                item.is_valid = False
                item.errors = e.result.errors
        result.is_valid = not result.failed_ids

        logger.info(
            f"Bulk {operation.value}: applied {len(result.valid_ids)}, skipped {len(result.failed_ids)}"
        )
        return result

    async def _apply_item(self, product_id: int, operation: BulkOperation, options: ValidationOptions) -> None:
        admin_id = options.admin_id
        if operation is BulkOperation.PUBLISH:
            await self.publish(PublishRequest(product_id=product_id, admin_id=admin_id, force_publish=options.force))
        elif operation is BulkOperation.VERIFY:
            await self.verify(PublishRequest(product_id=product_id, admin_id=admin_id, force_publish=options.force))
        elif operation is BulkOperation.ARCHIVE:
            await self.archive(product_id, admin_id)
        elif operation is BulkOperation.RESTORE:
            await self.restore(product_id, admin_id)
        elif operation is BulkOperation.DELETE:
            await self.delete(product_id, admin_id, force=options.force)
        elif operation is BulkOperation.PURGE:
            await self.purge(product_id, admin_id, force=options.force)

    # ==================== Categories ====================

    async def activate_category(self, category_id: int, admin_id: int) -> CategorySnapshot:
        """Activate a category within the active category cap."""
        result = await self.validator.validate_category_activation(category_id)
        self._ensure_valid(result)

        category = await self.store.update_category_fields(category_id, {"active": True})
        await self._commit()

        logger.info(f"Category {category_id} activated by admin {admin_id}")
        await self._audit(
            "activate",
            category_id,
            admin_id,
            {"active": False},
            {"active": True},
            f"Activated category {category.name}",
            entity_type=EntityType.CATEGORY,
        )
        return category
