"""Publication gate: may this product reach VERIFIED or PUBLISHED?

Checks run in a fixed order and all of them are evaluated, so an admin gets
the complete list of corrections in one pass:

1. state machine legality
2. required fields
3. category exists and is active
4. at least one active link
5. price within bounds
6. slug unique among products

With force=True only the first check blocks; the rest become warnings.
"""

import logging
from decimal import Decimal

from curation.core.config import settings
from curation.models.enums import EntityType, ProductStatus
from curation.schemas.catalog import CategorySnapshot, LinkSnapshot
from curation.schemas.product import ProductSnapshot
from curation.schemas.validation import ErrorKind, GateDecision, ValidationIssue
from curation.services.status_machine import allowed_transitions, can_transition, parse_status
from curation.services.uniqueness_service import UniquenessService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "slug", "market_price", "category_id", "image")

GATED_TARGETS = (ProductStatus.VERIFIED, ProductStatus.PUBLISHED)


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def check_price(
    price: Decimal | None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
) -> ValidationIssue | None:
    """Inclusive Decimal bounds check. None means nothing to check."""
    if price is None:
        return None
    low = Decimal(settings.MIN_PRICE) if min_price is None else min_price
    high = Decimal(settings.MAX_PRICE) if max_price is None else max_price
    price = Decimal(price)
    if low <= price <= high:
        return None
    return ValidationIssue(
        field="market_price",
        rule="price_range",
        message=f"Price must be between {low} and {high}",
        value=str(price),
        params={"min": str(low), "max": str(high)},
    )


class PublicationGate:
    """Composes the state machine with per-product publish prerequisites."""

    def __init__(self, uniqueness: UniquenessService):
        self.uniqueness = uniqueness

    async def evaluate(
        self,
        product: ProductSnapshot,
        category: CategorySnapshot | None,
        active_links: list[LinkSnapshot],
        target: ProductStatus | str,
        force: bool = False,
    ) -> GateDecision:
        """Decide whether product may move to target.

        Args:
            product: Current product snapshot
            category: The product's category, None if unset or missing
            active_links: Active, non-deleted links of the product
            target: VERIFIED or PUBLISHED
            force: Downgrade every check except state legality to a warning

        Returns:
            GateDecision with errors (blocking) and warnings (force only)

        Raises:
            ValueError: target is not a gated status
        """
        target = parse_status(target)
        if target not in GATED_TARGETS:
            raise ValueError(f"Publication gate only handles {[s.value for s in GATED_TARGETS]}, got {target.value}")

        blocking: list[ValidationIssue] = []
        soft: list[ValidationIssue] = []

        # 1. State machine
        if not can_transition(product.status, target):
            blocking.append(
                ValidationIssue(
                    field="status",
                    rule="valid_transition",
                    message=f"Cannot move product from {product.status} to {target.value}",
                    value=product.status,
                    params={
                        "from": product.status,
                        "to": target.value,
                        "allowed": [s.value for s in allowed_transitions(product.status)],
                    },
                )
            )

        # 2. Required fields
        rule = "required_for_publish" if target is ProductStatus.PUBLISHED else "required_for_verification"
        for field in REQUIRED_FIELDS:
            if _is_blank(getattr(product, field)):
                soft.append(
                    ValidationIssue(
                        field=field,
                        rule=rule,
                        message=f"{field.replace('_', ' ').capitalize()} is required before {target.label.lower()}",
                        value=None,
                        kind=ErrorKind.SHAPE,
                    )
                )

        # 3. Category
        if product.category_id is not None:
            if category is None or category.id != product.category_id or category.deleted_at is not None:
                soft.append(
                    ValidationIssue(
                        field="category_id",
                        rule="category_exists",
                        message="Category does not exist",
                        value=product.category_id,
                        kind=ErrorKind.NOT_FOUND,
                    )
                )
            elif not category.active:
                soft.append(
                    ValidationIssue(
                        field="category_id",
                        rule="category_active",
                        message=f"Category '{category.name}' is not active",
                        value=product.category_id,
                    )
                )

        # 4. Links
        live_links = [link for link in active_links if link.active and link.deleted_at is None]
        if not live_links:
            soft.append(
                ValidationIssue(
                    field="links",
                    rule="active_links_required",
                    message="At least one active marketplace link is required",
                    value=0,
                )
            )

        # 5. Price
        price_issue = check_price(product.market_price)
        if price_issue is not None:
            soft.append(price_issue)

        # 6. Slug uniqueness
        if not _is_blank(product.slug):
            if not await self.uniqueness.is_slug_unique(product.slug, EntityType.PRODUCT, product.id):
                soft.append(
                    ValidationIssue(
                        field="slug",
                        rule="unique",
                        message="Product slug must be unique",
                        value=product.slug,
                    )
                )

        if force:
            if soft:
                logger.warning(
                    f"Force {target.value} of product {product.id} bypassing {[i.rule for i in soft]}"
                )
            return GateDecision(eligible=not blocking, errors=blocking, warnings=soft)

        errors = blocking + soft
        return GateDecision(eligible=not errors, errors=errors)
