"""Tests for ProductWorkflowService and AuditService.

The session is mocked; CatalogStore is replaced by the mock_store fixture so
the workflow and the validator read the same fake catalog.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from curation.models.enums import EntityType
from curation.schemas.audit import AuditEvent
from curation.schemas.product import PublishRequest
from curation.schemas.validation import BulkOperation, ValidationOptions
from curation.services.audit_service import AuditService
from curation.services.catalog_store import StoreUnavailableError
from curation.services.workflow_service import ProductWorkflowService, WorkflowRejectedError

DELETED_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create a mock AsyncSession."""
    db = AsyncMock()
    db.add = MagicMock()
    db.expire_all = MagicMock()
    return db


@pytest.fixture
def mock_audit() -> AsyncMock:
    audit = AsyncMock(spec=AuditService)
    audit.record = AsyncMock(return_value=True)
    return audit


@pytest.fixture
def workflow(mock_db, mock_store, cache, validator, mock_audit) -> ProductWorkflowService:
    service = ProductWorkflowService(mock_db, cache, validator=validator, audit=mock_audit)
    service.store = mock_store
    return service


def recorded_event(mock_audit) -> AuditEvent:
    return mock_audit.record.call_args[0][0]


class TestCreateProduct:
    """Test create_product."""

    @pytest.mark.asyncio
    async def test_create_inserts_commits_and_audits(
        self, workflow, mock_db, mock_store, mock_audit, make_product, active_category, create_payload
    ):
        mock_store.find_category = AsyncMock(return_value=active_category)
        mock_store.insert_product = AsyncMock(return_value=make_product(status="draft", created_by=4))

        product = await workflow.create_product(create_payload, admin_id=4)

        assert product.status == "draft"
        fields = mock_store.insert_product.call_args[0][0]
        assert fields["status"] == "draft"
        assert fields["created_by"] == 4
        assert fields["slug"] == "widget"
        mock_db.commit.assert_awaited_once()

        event = recorded_event(mock_audit)
        assert event.action == "create"
        assert event.before is None
        assert event.after["slug"] == "widget"

    @pytest.mark.asyncio
    async def test_create_forgets_cached_slug_answer(
        self, workflow, mock_store, make_product, active_category, create_payload
    ):
        mock_store.find_category = AsyncMock(return_value=active_category)
        mock_store.insert_product = AsyncMock(return_value=make_product(status="draft"))

        await workflow.create_product(create_payload, admin_id=4, check_daily_limit=False)
        calls = mock_store.count_by_normalized_field.call_count

        # The "widget is free" answer from validation must not survive the insert
        await workflow.uniqueness.is_slug_unique("widget")

        assert mock_store.count_by_normalized_field.call_count == calls + 1

    @pytest.mark.asyncio
    async def test_rejected_create_writes_nothing(self, workflow, mock_db, mock_store, mock_audit, create_payload):
        with pytest.raises(WorkflowRejectedError) as exc_info:
            await workflow.create_product(create_payload, admin_id=4)

        assert exc_info.value.result.errors[0].rule == "category_exists"
        mock_store.insert_product.assert_not_called()
        mock_db.commit.assert_not_awaited()
        mock_audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_commit_failure_is_store_unavailable(
        self, workflow, mock_db, mock_store, make_product, active_category, create_payload
    ):
        mock_store.find_category = AsyncMock(return_value=active_category)
        mock_store.insert_product = AsyncMock(return_value=make_product(status="draft"))
        mock_db.commit = AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("gone")))

        with pytest.raises(StoreUnavailableError):
            await workflow.create_product(create_payload, admin_id=4)

        mock_db.rollback.assert_awaited_once()


class TestUpdateProduct:
    """Test update_product."""

    @pytest.mark.asyncio
    async def test_update_slug(self, workflow, mock_store, mock_audit, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(status="draft"))
        mock_store.update_product_fields = AsyncMock(return_value=make_product(status="draft", slug="widget-pro"))

        product = await workflow.update_product(1, {"slug": "Widget-Pro"}, admin_id=4)

        assert product.slug == "widget-pro"
        mock_store.update_product_fields.assert_called_once_with(1, {"slug": "widget-pro"})
        assert recorded_event(mock_audit).summary == "Updated slug"

    @pytest.mark.asyncio
    async def test_empty_update_is_noop(self, workflow, mock_db, mock_store, mock_audit, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product())

        await workflow.update_product(1, {}, admin_id=4)

        mock_store.update_product_fields.assert_not_called()
        mock_db.commit.assert_not_awaited()
        mock_audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_locked_field_on_published_product(self, workflow, mock_store, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(status="published"))

        with pytest.raises(WorkflowRejectedError):
            await workflow.update_product(1, {"category_id": 8}, admin_id=4)

        mock_store.update_product_fields.assert_not_called()


class TestStatusChanges:
    """Test submit, publish, archive and restore."""

    @pytest.mark.asyncio
    async def test_submit(self, workflow, mock_store, mock_audit, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(status="draft"))
        mock_store.update_product_fields = AsyncMock(return_value=make_product(status="pending_verification"))

        await workflow.submit(1, admin_id=4)

        mock_store.update_product_fields.assert_called_once_with(1, {"status": "pending_verification"})
        assert recorded_event(mock_audit).summary == "draft -> pending_verification"

    @pytest.mark.asyncio
    async def test_publish_sets_timestamp(
        self, workflow, mock_store, mock_audit, make_product, active_category, active_link
    ):
        mock_store.find_product = AsyncMock(return_value=make_product())
        mock_store.find_category = AsyncMock(return_value=active_category)
        mock_store.find_active_links_for_product = AsyncMock(return_value=[active_link])
        mock_store.update_product_fields = AsyncMock(return_value=make_product(status="published"))

        product = await workflow.publish(PublishRequest(product_id=1, admin_id=4))

        assert product.is_published
        fields = mock_store.update_product_fields.call_args[0][1]
        assert fields["status"] == "published"
        assert fields["published_at"].tzinfo is not None
        event = recorded_event(mock_audit)
        assert event.action == "publish"
        assert event.before["status"] == "verified"
        assert event.after["status"] == "published"
        assert "warnings" not in event.after

    @pytest.mark.asyncio
    async def test_forced_publish_keeps_warnings_in_audit(
        self, workflow, mock_store, mock_audit, make_product, active_category, active_link
    ):
        mock_store.find_product = AsyncMock(return_value=make_product(image=None))
        mock_store.find_category = AsyncMock(return_value=active_category)
        mock_store.find_active_links_for_product = AsyncMock(return_value=[active_link])
        mock_store.update_product_fields = AsyncMock(return_value=make_product(status="published", image=None))

        await workflow.publish(PublishRequest(product_id=1, admin_id=4, force_publish=True))

        assert recorded_event(mock_audit).after["warnings"] == ["image:required_for_publish"]

    @pytest.mark.asyncio
    async def test_publish_without_links_rejected(self, workflow, mock_store, make_product, active_category):
        mock_store.find_product = AsyncMock(return_value=make_product())
        mock_store.find_category = AsyncMock(return_value=active_category)

        with pytest.raises(WorkflowRejectedError) as exc_info:
            await workflow.publish(PublishRequest(product_id=1, admin_id=4))

        assert "links:active_links_required" in str(exc_info.value)
        mock_store.update_product_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_restore_from_trash(self, workflow, mock_store, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(status="archived", deleted_at=DELETED_AT))
        mock_store.update_product_fields = AsyncMock(return_value=make_product(status="pending_verification"))

        await workflow.restore(1, admin_id=4)

        mock_store.update_product_fields.assert_called_once_with(
            1, {"status": "pending_verification", "deleted_at": None}
        )

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_undo_write(self, workflow, mock_db, mock_store, mock_audit, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(status="published"))
        mock_store.update_product_fields = AsyncMock(return_value=make_product(status="archived"))
        mock_audit.record = AsyncMock(return_value=False)

        product = await workflow.archive(1, admin_id=4)

        assert product.is_archived
        mock_db.commit.assert_awaited_once()


class TestDeleteAndPurge:
    """Test soft delete and purge."""

    @pytest.mark.asyncio
    async def test_soft_delete(self, workflow, mock_store, mock_audit, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(status="draft"))
        mock_store.update_product_fields = AsyncMock(return_value=make_product(status="draft", deleted_at=DELETED_AT))

        product = await workflow.delete(1, admin_id=4)

        assert product.is_deleted
        fields = mock_store.update_product_fields.call_args[0][1]
        assert list(fields) == ["deleted_at"]
        assert recorded_event(mock_audit).action == "delete"

    @pytest.mark.asyncio
    async def test_forced_delete_of_deleted_product_is_noop(self, workflow, mock_db, mock_store, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(deleted_at=DELETED_AT))

        product = await workflow.delete(1, admin_id=4, force=True)

        assert product.is_deleted
        mock_store.update_product_fields.assert_not_called()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_purge(self, workflow, mock_store, mock_audit, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(deleted_at=DELETED_AT))
        mock_store.purge_product = AsyncMock(return_value=True)

        assert await workflow.purge(1, admin_id=4, force=True) is True

        event = recorded_event(mock_audit)
        assert event.action == "purge"
        assert event.after is None

    @pytest.mark.asyncio
    async def test_purge_without_force(self, workflow, mock_store, make_product):
        mock_store.find_product = AsyncMock(return_value=make_product(deleted_at=DELETED_AT))

        with pytest.raises(WorkflowRejectedError):
            await workflow.purge(1, admin_id=4)

        mock_store.purge_product.assert_not_called()


class TestApplyBulk:
    """Test apply_bulk."""

    @pytest.mark.asyncio
    async def test_applies_only_valid_items(self, workflow, mock_store, make_product):
        products = {1: make_product(id=1, status="verified"), 2: make_product(id=2, status="draft")}

        async def _find(product_id, include_deleted=False):
            return products.get(product_id)

        mock_store.find_product = AsyncMock(side_effect=_find)
        mock_store.update_product_fields = AsyncMock(return_value=make_product(id=1, status="archived"))

        result = await workflow.apply_bulk([1, 2], BulkOperation.ARCHIVE, ValidationOptions(admin_id=4))

        assert result.valid_ids == [1]
        assert result.failed_ids == [2]
        assert result.is_valid is False
        mock_store.update_product_fields.assert_called_once_with(1, {"status": "archived"})

    @pytest.mark.asyncio
    async def test_batch_error_raises(self, workflow, mock_store):
        with pytest.raises(WorkflowRejectedError):
            await workflow.apply_bulk([5, 5, 7], "archive", ValidationOptions(admin_id=4))

        mock_store.find_product.assert_not_called()


class TestActivateCategory:
    """Test activate_category."""

    @pytest.mark.asyncio
    async def test_activate(self, workflow, mock_store, mock_audit, inactive_category, active_category):
        mock_store.find_category = AsyncMock(return_value=inactive_category)
        mock_store.update_category_fields = AsyncMock(return_value=active_category)

        category = await workflow.activate_category(3, admin_id=4)

        assert category.active is True
        mock_store.update_category_fields.assert_called_once_with(3, {"active": True})
        assert recorded_event(mock_audit).entity_type is EntityType.CATEGORY

    @pytest.mark.asyncio
    async def test_activate_over_cap(self, workflow, mock_store, inactive_category):
        mock_store.find_category = AsyncMock(return_value=inactive_category)
        mock_store.count_active_categories = AsyncMock(return_value=15)

        with pytest.raises(WorkflowRejectedError):
            await workflow.activate_category(3, admin_id=4)

        mock_store.update_category_fields.assert_not_called()


class TestAuditService:
    """Test the audit sink against a mocked session."""

    @pytest.mark.asyncio
    async def test_record(self, mock_db):
        audit = AuditService(mock_db)

        stored = await audit.record(AuditEvent(admin_id=4, action="archive", entity_id=1, summary="x"))

        assert stored is True
        row = mock_db.add.call_args[0][0]
        assert row.action == "archive"
        assert row.entity_type == "product"
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, mock_db, caplog):
        mock_db.commit = AsyncMock(side_effect=SQLAlchemyError("disk full"))
        audit = AuditService(mock_db)

        stored = await audit.record(AuditEvent(admin_id=4, action="publish", entity_id=1))

        assert stored is False
        mock_db.rollback.assert_awaited_once()
        assert "Failed to record audit publish" in caplog.text
