"""Cache-backed uniqueness and quota lookups.

Key layout:
- slug_unique:{entity}:{slug}:{exclude_id}   bool, tagged slug:{entity}:{slug}
- name_unique:{entity}:{name}:{exclude_id}   bool, tagged name:{entity}:{name}
- daily_products:{admin_id}:{yyyy-mm-dd}     int

Catalog and category counts are never cached here; capacity decisions read
the store directly.
"""

import logging
from datetime import date

from curation.core.config import settings
from curation.models.enums import EntityType
from curation.services.cache_service import CacheBackend
from curation.services.catalog_store import CatalogStore

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Case-insensitive comparison form of a display name."""
    return name.strip().lower()


def slug_tag(entity_type: EntityType | str, slug: str) -> str:
    return f"slug:{EntityType(entity_type).value}:{slug}"


def name_tag(entity_type: EntityType | str, name: str) -> str:
    return f"name:{EntityType(entity_type).value}:{normalize_name(name)}"


def daily_quota_key(admin_id: int, day: date) -> str:
    return f"daily_products:{admin_id}:{day.isoformat()}"


def _exclude_part(exclude_id: int | None) -> str:
    return "none" if exclude_id is None else str(exclude_id)


class UniquenessService:
    """Memoized slug/name uniqueness and per-admin creation counts."""

    def __init__(
        self,
        store: CatalogStore,
        cache: CacheBackend,
        uniqueness_ttl: int | None = None,
        quota_ttl: int | None = None,
    ):
        """Initialize uniqueness service.

        Args:
            store: Catalog store used on cache misses
            cache: Cache facade shared by all calls
            uniqueness_ttl: Seconds a uniqueness answer is reused
            quota_ttl: Seconds a daily creation count is reused
        """
        self.store = store
        self.cache = cache
        self.uniqueness_ttl = uniqueness_ttl or settings.UNIQUENESS_CACHE_TTL
        self.quota_ttl = quota_ttl or settings.DAILY_QUOTA_CACHE_TTL

    async def is_slug_unique(
        self,
        slug: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
    ) -> bool:
        """Whether no other live row of entity_type uses slug (case-insensitive).

        Args:
            slug: Normalized slug
            entity_type: product, category or marketplace
            exclude_id: Row to ignore, usually the one being edited

        Raises:
            ValueError: Unsupported entity type
        """
        entity = EntityType(entity_type)
        slug = slug.lower()
        key = f"slug_unique:{entity.value}:{slug}:{_exclude_part(exclude_id)}"

        cached = await self.cache.get(key)
        if cached is not None:
            return bool(cached)

        count = await self.store.count_by_normalized_field(entity, "slug", slug, exclude_id)
        is_unique = count == 0
        await self.cache.set(key, is_unique, self.uniqueness_ttl, tags=[slug_tag(entity, slug)])
        return is_unique

    async def is_name_unique(
        self,
        name: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
    ) -> bool:
        """Case-insensitive display name uniqueness, cached like slugs."""
        entity = EntityType(entity_type)
        normalized = normalize_name(name)
        key = f"name_unique:{entity.value}:{normalized}:{_exclude_part(exclude_id)}"

        cached = await self.cache.get(key)
        if cached is not None:
            return bool(cached)

        count = await self.store.count_by_normalized_field(entity, "name", normalized, exclude_id)
        is_unique = count == 0
        await self.cache.set(key, is_unique, self.uniqueness_ttl, tags=[name_tag(entity, normalized)])
        return is_unique

    async def products_created_on(self, admin_id: int, day: date) -> int:
        """Number of products admin_id created on day (UTC)."""
        key = daily_quota_key(admin_id, day)
        cached = await self.cache.get(key)
        if cached is not None:
            return int(cached)

        count = await self.store.count_products_created_by(admin_id, day)
        await self.cache.set(key, count, self.quota_ttl)
        return count

    # ==================== Invalidation ====================

    async def forget_slugs(self, entity_type: EntityType | str, *slugs: str | None) -> None:
        tags = {slug_tag(entity_type, s.lower()) for s in slugs if s}
        if tags:
            await self.cache.invalidate_tags(*sorted(tags))

    async def forget_names(self, entity_type: EntityType | str, *names: str | None) -> None:
        tags = {name_tag(entity_type, n) for n in names if n}
        if tags:
            await self.cache.invalidate_tags(*sorted(tags))

    async def forget_daily_count(self, admin_id: int, day: date) -> None:
        await self.cache.delete(daily_quota_key(admin_id, day))
        logger.debug(f"Cleared daily product count for admin {admin_id} on {day}")
