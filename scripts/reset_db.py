"""Reset the catalog to an empty state.

Clears all data from:
- audit_logs
- links
- products
- marketplace_badges, badges, marketplaces
- categories

Also drops every cached uniqueness answer, suggestion and daily quota.

Usage:
    uv run python -m scripts.reset_db
"""

import asyncio

from redis.exceptions import RedisError
from sqlalchemy import text

from curation.core.config import settings
from curation.core.database import engine, session_scope
from curation.core.redis import close_redis, get_redis

# Children before parents because of foreign keys
CATALOG_TABLES = [
    "audit_logs",
    "links",
    "products",
    "marketplace_badges",
    "badges",
    "marketplaces",
    "categories",
]


async def reset_database():
    """Clear all data from the catalog tables."""
    print("=" * 60)
    print("Resetting catalog to empty state...")
    print("=" * 60)

    async with session_scope() as session:
        for table in CATALOG_TABLES:
            result = await session.execute(text(f"DELETE FROM {table}"))
            print(f"  Deleted {result.rowcount} rows from {table}")

        await session.commit()
        print("\nDatabase cleared successfully!")


async def reset_cache():
    """Flush the Redis cache. The local backend dies with the process."""
    print("\nResetting cache...")

    if settings.CACHE_BACKEND != "redis":
        print(f"  CACHE_BACKEND={settings.CACHE_BACKEND}, nothing to flush")
        return

    try:
        redis = await get_redis()
        await redis.flushdb()
        print("  Redis flushed successfully!")
    except RedisError as e:
        print(f"  Warning: Could not clear Redis: {e}")
        print("  (This is OK if Redis is not running locally)")
    finally:
        await close_redis()


async def main():
    await reset_database()
    await reset_cache()

    print("\n" + "=" * 60)
    print("Reset complete!")
    print("=" * 60)
    print("\nTo re-seed the catalog, run:")
    print("  uv run python -m scripts.seed_data")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
