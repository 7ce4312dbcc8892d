"""Seed data script for development and testing.

Creates:
- 6 categories, the first ACTIVE_CATEGORIES of them activated
- 3 marketplaces
- SEED_PRODUCTS products created through the curation workflow, each with
  one affiliate link; every other product is pushed through
  submit -> verify -> publish

Environment Variables:
    SEED_PRODUCTS: Number of products to create (default: 12)
    ACTIVE_CATEGORIES: Categories to activate (default: 5)
    RESET_DATA: Set to "true" to clear the catalog before seeding (default: false)

Usage:
    uv run python -m scripts.seed_data
    RESET_DATA=true SEED_PRODUCTS=40 uv run python -m scripts.seed_data
"""

import asyncio
import os
from decimal import Decimal

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from curation.core.config import settings
from curation.core.database import engine, session_scope
from curation.core.logging import setup_logging
from curation.core.redis import close_redis
from curation.models import Category, Link, Marketplace
from curation.schemas.product import PublishRequest
from curation.services.cache_service import get_cache
from curation.services.slug_service import normalize
from curation.services.workflow_service import ProductWorkflowService, WorkflowRejectedError

# Configuration from environment variables
SEED_PRODUCTS = int(os.getenv("SEED_PRODUCTS", "12"))
ACTIVE_CATEGORIES = int(os.getenv("ACTIVE_CATEGORIES", "5"))
RESET_DATA = os.getenv("RESET_DATA", "false").lower() == "true"

SEED_ADMIN_ID = 1

CATEGORY_NAMES = ["Audio", "Home Office", "Kitchen", "Outdoor", "Gaming", "Wearables"]
MARKETPLACES = [("Tokopedia", "#42b549"), ("Shopee", "#ee4d2d"), ("Lazada", "#0f146d")]
PRODUCT_NAMES = [
    "Wireless Noise Cancelling Headphones",
    "Ergonomic Mesh Office Chair",
    "Stainless Steel French Press",
    "Ultralight Camping Tent",
    "Mechanical Gaming Keyboard",
    "Fitness Tracker Band",
    "Bluetooth Bookshelf Speakers",
    "Adjustable Standing Desk",
    "Cast Iron Skillet",
    "Insulated Water Bottle",
]


async def reset_catalog(session: AsyncSession) -> None:
    """Clear every catalog table, children first."""
    print("Resetting catalog data...")
    for table in ["audit_logs", "links", "products", "marketplace_badges", "badges", "marketplaces", "categories"]:
        await session.execute(text(f"DELETE FROM {table}"))
    await session.commit()
    print("  Cleared catalog tables")


async def seed_categories(session: AsyncSession, workflow: ProductWorkflowService) -> list[int]:
    """Create inactive categories, then activate through the workflow so the cap applies.

    Returns:
        Ids of the active categories
    """
    print("Seeding categories...")

    result = await session.execute(select(Category.id, Category.active).order_by(Category.id))
    existing = result.all()
    if existing:
        print("  Categories already exist, skipping...")
        return [category_id for category_id, active in existing if active]

    categories = [
        Category(name=name, slug=normalize(name), sort_order=i, active=False)
        for i, name in enumerate(CATEGORY_NAMES)
    ]
    session.add_all(categories)
    await session.commit()
    # Plain values: the store expires ORM instances after every write
    targets = [(c.id, c.name) for c in categories[:ACTIVE_CATEGORIES]]

    active_ids = []
    for category_id, name in targets:
        try:
            await workflow.activate_category(category_id, SEED_ADMIN_ID)
            active_ids.append(category_id)
            print(f"  Activated category: {name}")
        except WorkflowRejectedError as e:
            print(f"  Skipped {name}: {e}")

    print(f"  Created {len(categories)} categories")
    return active_ids


async def seed_marketplaces(session: AsyncSession) -> list[tuple[int, str, str]]:
    """Returns (id, name, slug) per marketplace."""
    print("Seeding marketplaces...")

    result = await session.execute(
        select(Marketplace.id, Marketplace.name, Marketplace.slug).order_by(Marketplace.id)
    )
    existing = [tuple(row) for row in result.all()]
    if existing:
        print("  Marketplaces already exist, skipping...")
        return existing

    marketplaces = [Marketplace(name=name, slug=normalize(name), color=color) for name, color in MARKETPLACES]
    session.add_all(marketplaces)
    await session.commit()

    print(f"  Created {len(marketplaces)} marketplaces")
    return [(m.id, m.name, m.slug) for m in marketplaces]


async def seed_products(
    session: AsyncSession,
    workflow: ProductWorkflowService,
    category_ids: list[int],
    marketplaces: list[tuple[int, str, str]],
) -> tuple[int, int]:
    """Create products through the workflow and publish every other one.

    Returns:
        (created, published)
    """
    print("Seeding products...")
    if not category_ids:
        print("  No active categories, skipping...")
        return 0, 0
    created = published = 0

    for i in range(SEED_PRODUCTS):
        base = PRODUCT_NAMES[i % len(PRODUCT_NAMES)]
        name = base if i < len(PRODUCT_NAMES) else f"{base} {i // len(PRODUCT_NAMES) + 1}"
        price = Decimal(150000 + 25000 * i)

        try:
            slug = await workflow.validator.generate_slug(name)
            product = await workflow.create_product(
                {
                    "name": name,
                    "slug": slug,
                    "description": f"Editor's pick: {name}",
                    "market_price": price,
                    "category_id": category_ids[i % len(category_ids)],
                    "image": f"{slug}.jpg",
                },
                SEED_ADMIN_ID,
                check_daily_limit=False,
            )
        except WorkflowRejectedError as e:
            print(f"  Skipped {name}: {e}")
            continue
        created += 1

        marketplace_id, marketplace_name, marketplace_slug = marketplaces[i % len(marketplaces)]
        session.add(
            Link(
                product_id=product.id,
                marketplace_id=marketplace_id,
                store_name=f"{marketplace_name} Official Store",
                price=price - Decimal("1000"),
                url=f"https://example.com/{marketplace_slug}/{product.slug}",
            )
        )
        await session.commit()

        if i % 2 == 0:
            request = PublishRequest(product_id=product.id, admin_id=SEED_ADMIN_ID)
            try:
                await workflow.submit(product.id, SEED_ADMIN_ID)
                await workflow.verify(request)
                await workflow.publish(request)
                published += 1
            except WorkflowRejectedError as e:
                print(f"  {product.slug} stayed unpublished: {e}")

    print(f"  Created {created} products, published {published}")
    return created, published


async def main():
    """Main seed function."""
    setup_logging()

    print("=" * 60)
    print("Curation Engine - Seed Data Script")
    print("=" * 60)
    print(f"  RESET_DATA: {RESET_DATA}")
    print(f"  SEED_PRODUCTS: {SEED_PRODUCTS}")
    print(f"  ACTIVE_CATEGORIES: {ACTIVE_CATEGORIES}")
    print(f"  CACHE_BACKEND: {settings.CACHE_BACKEND}")
    print("=" * 60)

    cache = await get_cache()

    async with session_scope() as session:
        if RESET_DATA:
            await reset_catalog(session)

        workflow = ProductWorkflowService(session, cache)
        category_ids = await seed_categories(session, workflow)
        marketplaces = await seed_marketplaces(session)
        created, published = await seed_products(session, workflow, category_ids, marketplaces)

    print("=" * 60)
    print("Seed data complete!")
    print(f"  Active categories: {len(category_ids)}")
    print(f"  Marketplaces: {len(marketplaces)}")
    print(f"  Products: {created} created, {published} published")
    print("=" * 60)

    # Cleanup
    if settings.CACHE_BACKEND == "redis":
        await close_redis()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
