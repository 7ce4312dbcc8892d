"""Tests for the publication gate."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from curation.models.enums import ProductStatus
from curation.schemas.catalog import LinkSnapshot
from curation.services.publication_gate import PublicationGate, check_price
from curation.services.uniqueness_service import UniquenessService


@pytest.fixture
def gate(mock_store, cache) -> PublicationGate:
    return PublicationGate(UniquenessService(mock_store, cache))


class TestGateHappyPath:
    """Test a fully prepared product."""

    @pytest.mark.asyncio
    async def test_widget_with_link_is_eligible(self, gate, make_product, active_category, active_link):
        decision = await gate.evaluate(
            make_product(), active_category, [active_link], ProductStatus.PUBLISHED
        )

        assert decision.eligible is True
        assert decision.errors == []
        assert decision.warnings == []

    @pytest.mark.asyncio
    async def test_widget_without_links(self, gate, make_product, active_category):
        decision = await gate.evaluate(make_product(), active_category, [], ProductStatus.PUBLISHED)

        assert decision.eligible is False
        assert [(e.field, e.rule) for e in decision.errors] == [("links", "active_links_required")]

    @pytest.mark.asyncio
    async def test_verify_from_pending(self, gate, make_product, active_category, active_link):
        product = make_product(status="pending_verification")

        decision = await gate.evaluate(product, active_category, [active_link], ProductStatus.VERIFIED)

        assert decision.eligible is True


class TestGateChecks:
    """Test each check and the order of reported errors."""

    @pytest.mark.asyncio
    async def test_illegal_transition(self, gate, make_product, active_category, active_link):
        product = make_product(status="draft")

        decision = await gate.evaluate(product, active_category, [active_link], ProductStatus.PUBLISHED)

        assert decision.eligible is False
        assert decision.errors[0].rule == "valid_transition"

    @pytest.mark.asyncio
    async def test_missing_image(self, gate, make_product, active_category, active_link):
        product = make_product(image=None)

        decision = await gate.evaluate(product, active_category, [active_link], ProductStatus.PUBLISHED)

        assert decision.eligible is False
        assert [(e.field, e.rule) for e in decision.errors] == [("image", "required_for_publish")]

    @pytest.mark.asyncio
    async def test_blank_strings_count_as_missing(self, gate, make_product, active_category, active_link):
        product = make_product(status="pending_verification", image="   ")

        decision = await gate.evaluate(product, active_category, [active_link], ProductStatus.VERIFIED)

        assert decision.errors[0].rule == "required_for_verification"

    @pytest.mark.asyncio
    async def test_inactive_category(self, gate, make_product, inactive_category, active_link):
        decision = await gate.evaluate(make_product(), inactive_category, [active_link], ProductStatus.PUBLISHED)

        assert [e.rule for e in decision.errors] == ["category_active"]

    @pytest.mark.asyncio
    async def test_missing_category(self, gate, make_product, active_link):
        decision = await gate.evaluate(make_product(), None, [active_link], ProductStatus.PUBLISHED)

        assert [e.rule for e in decision.errors] == ["category_exists"]

    @pytest.mark.asyncio
    async def test_inactive_links_do_not_count(self, gate, make_product, active_category, active_link):
        dead_link = active_link.model_copy(update={"active": False})

        decision = await gate.evaluate(make_product(), active_category, [dead_link], ProductStatus.PUBLISHED)

        assert [e.rule for e in decision.errors] == ["active_links_required"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "price,ok",
        [
            (Decimal("99.99"), False),
            (Decimal("100"), True),
            (Decimal("1000000000"), True),
            (Decimal("1000000000.01"), False),
        ],
    )
    async def test_price_bounds(self, gate, make_product, active_category, active_link, price, ok):
        decision = await gate.evaluate(
            make_product(market_price=price), active_category, [active_link], ProductStatus.PUBLISHED
        )

        assert decision.eligible is ok
        if not ok:
            assert decision.errors[0].rule == "price_range"

    @pytest.mark.asyncio
    async def test_duplicate_slug(self, gate, mock_store, make_product, active_category, active_link):
        mock_store.count_by_normalized_field = AsyncMock(return_value=1)

        decision = await gate.evaluate(make_product(), active_category, [active_link], ProductStatus.PUBLISHED)

        assert [e.rule for e in decision.errors] == ["unique"]
        # Own id excluded from the lookup
        args = mock_store.count_by_normalized_field.call_args[0]
        assert args[1:] == ("slug", "widget", 1)

    @pytest.mark.asyncio
    async def test_collects_all_failures_in_order(self, gate, mock_store, make_product, inactive_category):
        mock_store.count_by_normalized_field = AsyncMock(return_value=1)
        product = make_product(status="draft", image=None, market_price=Decimal("5"))

        decision = await gate.evaluate(product, inactive_category, [], ProductStatus.PUBLISHED)

        assert [e.rule for e in decision.errors] == [
            "valid_transition",
            "required_for_publish",
            "category_active",
            "active_links_required",
            "price_range",
            "unique",
        ]

    @pytest.mark.asyncio
    async def test_rejects_ungated_target(self, gate, make_product, active_category):
        with pytest.raises(ValueError):
            await gate.evaluate(make_product(), active_category, [], ProductStatus.ARCHIVED)


class TestForcedPublication:
    """Test force=True."""

    @pytest.mark.asyncio
    async def test_force_turns_missing_image_into_warning(self, gate, make_product, active_category, active_link):
        product = make_product(image=None)

        decision = await gate.evaluate(
            product, active_category, [active_link], ProductStatus.PUBLISHED, force=True
        )

        assert decision.eligible is True
        assert decision.errors == []
        assert [(w.field, w.rule) for w in decision.warnings] == [("image", "required_for_publish")]

    @pytest.mark.asyncio
    async def test_force_does_not_bypass_state_machine(self, gate, make_product, active_category):
        product = make_product(status="archived")

        decision = await gate.evaluate(product, active_category, [], ProductStatus.PUBLISHED, force=True)

        assert decision.eligible is False
        assert [e.rule for e in decision.errors] == ["valid_transition"]
        assert [w.rule for w in decision.warnings] == ["active_links_required"]


class TestCheckPrice:
    """Test the Decimal price check."""

    def test_none_price_not_checked(self):
        assert check_price(None) is None

    def test_custom_bounds(self):
        issue = check_price(Decimal("50"), min_price=Decimal("60"), max_price=Decimal("70"))
        assert issue.rule == "price_range"
        assert issue.params == {"min": "60", "max": "70"}


def test_link_snapshot_defaults():
    link = LinkSnapshot(id=1, product_id=1, marketplace_id=1, store_name="Shop")
    assert link.active is True
    assert link.price == Decimal("0.00")
