"""Tests for CatalogStore row conversion and error wrapping."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from curation.models.enums import EntityType
from curation.services.catalog_store import CatalogStore, StoreUnavailableError


def result_with(scalar=None, rows=None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = rows or []
    return result


@pytest.fixture
def mock_db() -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    db.expire_all = MagicMock()
    return db


class TestReads:
    """Test query results turned into snapshots."""

    @pytest.mark.asyncio
    async def test_find_product_returns_snapshot(self, mock_db):
        row = SimpleNamespace(id=1, name="Widget", slug="widget", status="draft", deleted_at=None)
        mock_db.execute = AsyncMock(return_value=result_with(scalar=row))

        product = await CatalogStore(mock_db).find_product(1)

        assert product.id == 1
        assert product.slug == "widget"
        assert product.is_deleted is False

    @pytest.mark.asyncio
    async def test_find_product_missing(self, mock_db):
        mock_db.execute = AsyncMock(return_value=result_with())

        assert await CatalogStore(mock_db).find_product(1) is None

    @pytest.mark.asyncio
    async def test_links_converted(self, mock_db):
        row = SimpleNamespace(id=10, product_id=1, marketplace_id=2, store_name="Shop", active=True)
        mock_db.execute = AsyncMock(return_value=result_with(rows=[row]))

        links = await CatalogStore(mock_db).find_active_links_for_product(1)

        assert [link.id for link in links] == [10]

    @pytest.mark.asyncio
    async def test_empty_count_is_zero(self, mock_db):
        mock_db.execute = AsyncMock(return_value=result_with(scalar=None))

        assert await CatalogStore(mock_db).count_active_products() == 0


class TestErrors:
    """Test error wrapping and argument checks."""

    @pytest.mark.asyncio
    async def test_database_error_wrapped(self, mock_db):
        mock_db.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("refused")))

        with pytest.raises(StoreUnavailableError):
            await CatalogStore(mock_db).count_active_categories()

    @pytest.mark.asyncio
    async def test_unsupported_uniqueness_field(self, mock_db):
        with pytest.raises(ValueError):
            await CatalogStore(mock_db).count_by_normalized_field(EntityType.PRODUCT, "description", "x")

        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_product_field_rejected(self, mock_db):
        with pytest.raises(ValueError):
            await CatalogStore(mock_db).insert_product({"name": "Widget", "views": 3})

        mock_db.add.assert_not_called()
