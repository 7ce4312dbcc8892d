"""Slug normalization, validation and generation.

generate() is deterministic for a given store state: it tries the base slug,
then base-2, base-3, ... and only falls back to a timestamp suffix once the
max_attempts candidates are taken. suggest_alternatives() uses random suffixes and is
not deterministic.
"""

import logging
import random
import re
import string
import time
import unicodedata

from curation.core.config import settings
from curation.models.enums import EntityType
from curation.schemas.slug import SlugOptions
from curation.schemas.validation import ErrorKind, ValidationIssue
from curation.services.uniqueness_service import UniquenessService, slug_tag

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")

# Letters NFKD does not decompose into ASCII
TRANSLITERATIONS = {
    "ß": "ss",
    "æ": "ae",
    "ø": "o",
    "œ": "oe",
    "đ": "d",
    "ł": "l",
    "ð": "d",
    "þ": "th",
    "ı": "i",
}

RESERVED_SLUGS = frozenset(
    {
        # System routes
        "admin", "api", "dashboard", "login", "logout", "register", "password",
        "profile", "settings", "search", "cart", "checkout", "order", "payment",
        "invoice", "account", "user", "users", "customer", "customers",
        # Common pages
        "home", "index", "default", "main", "welcome", "about", "contact",
        "privacy", "terms", "policy", "faq", "help", "support", "blog", "news",
        # Catalog sections
        "products", "categories", "marketplaces", "brands", "shops", "stores",
        "deals", "offers", "discounts", "sales", "new", "featured", "popular",
        "trending", "best", "top", "latest",
        # API
        "v1", "v2", "graphql", "webhook", "callback", "oauth", "auth",
        # File paths
        "assets", "css", "js", "images", "uploads", "downloads", "files",
        "storage", "public", "private",
        # System files
        "robots.txt", "sitemap.xml", "favicon.ico", "humans.txt",
        # Admin features
        "backend", "cp", "control-panel", "manager", "moderator",
    }
)

ENTITY_RESERVED_SLUGS: dict[EntityType, frozenset[str]] = {
    EntityType.PRODUCT: frozenset({"create", "edit", "update", "delete", "publish", "archive", "manage"}),
    EntityType.CATEGORY: frozenset({"all", "uncategorized", "misc", "other", "general"}),
    EntityType.MARKETPLACE: frozenset(),
}

FILE_EXTENSIONS = (".html", ".htm", ".php", ".asp", ".aspx", ".jsp", ".do", ".action")

STOP_WORDS = frozenset({"a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"})

# Category slugs stay short enough for navigation
CATEGORY_MAX_WORDS = 3


def normalize(raw: str) -> str:
    """Lowercase, strip accents, collapse non [a-z0-9] runs to "-", trim hyphens.

    Example:
        "Crème Brûlée  Set!" -> "creme-brulee-set"
    """
    text = raw.lower()
    text = "".join(TRANSLITERATIONS.get(ch, ch) for ch in text)
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _NON_SLUG_CHARS.sub("-", text.lower()).strip("-")


def truncate(slug: str, max_length: int) -> str:
    """Cut slug to max_length, preferring the last hyphen in the final 30%."""
    if len(slug) <= max_length:
        return slug
    cut = slug[:max_length]
    last_hyphen = cut.rfind("-")
    if last_hyphen > 0 and last_hyphen > max_length * 0.7:
        cut = cut[:last_hyphen]
    return cut.rstrip("-")


def remove_stop_words(slug: str) -> str:
    words = [word for word in slug.split("-") if word and word not in STOP_WORDS]
    # A title made only of stop words keeps its words
    return "-".join(words) if words else slug


def limit_words(slug: str, max_words: int) -> str:
    return "-".join(slug.split("-")[:max_words])


def count_words(slug: str) -> int:
    """Words in a slug. Numeric parts such as collision suffixes do not count."""
    return sum(1 for part in slug.split("-") if part and not part.isdigit())


class SlugService:
    """Normalizes, validates and generates slugs for products, categories and marketplaces."""

    def __init__(
        self,
        uniqueness: UniquenessService,
        length_limits: dict[EntityType, tuple[int, int]] | None = None,
        suggestions_ttl: int | None = None,
    ):
        """Initialize slug service.

        Args:
            uniqueness: Cached uniqueness lookups
            length_limits: Per-entity (min, max) slug length overrides
            suggestions_ttl: Seconds a suggestion list is reused
        """
        self.uniqueness = uniqueness
        self.length_limits = length_limits or {}
        self.suggestions_ttl = suggestions_ttl or settings.SUGGESTIONS_CACHE_TTL

    normalize = staticmethod(normalize)

    def length_bounds(self, entity_type: EntityType | str) -> tuple[int, int]:
        return self.length_limits.get(
            EntityType(entity_type),
            (settings.SLUG_MIN_LENGTH, settings.SLUG_MAX_LENGTH),
        )

    def validate_format(self, slug: str, entity_type: EntityType | str = EntityType.PRODUCT) -> list[ValidationIssue]:
        """Pattern and length checks. Reports every failing rule."""
        issues = []
        min_length, max_length = self.length_bounds(entity_type)

        if not SLUG_PATTERN.match(slug):
            issues.append(
                ValidationIssue(
                    field="slug",
                    rule="format",
                    message="Slug can only contain lowercase letters, numbers and single hyphens between them",
                    value=slug,
                    kind=ErrorKind.SHAPE,
                    params={"normalized": normalize(slug)},
                )
            )
        if len(slug) < min_length:
            issues.append(
                ValidationIssue(
                    field="slug",
                    rule="min_length",
                    message=f"Slug must be at least {min_length} characters long",
                    value=slug,
                    kind=ErrorKind.SHAPE,
                    params={"min_length": min_length, "length": len(slug)},
                )
            )
        if len(slug) > max_length:
            issues.append(
                ValidationIssue(
                    field="slug",
                    rule="max_length",
                    message=f"Slug cannot exceed {max_length} characters",
                    value=slug,
                    kind=ErrorKind.SHAPE,
                    params={"max_length": max_length, "length": len(slug)},
                )
            )
        return issues

    def is_reserved(self, slug: str, entity_type: EntityType | str | None = None) -> bool:
        """Global deny-list, entity additions, numeric ids and file-name lookalikes."""
        raw = slug.strip().lower()
        normalized = normalize(slug)

        if raw in RESERVED_SLUGS or normalized in RESERVED_SLUGS:
            return True
        if entity_type is not None and normalized in ENTITY_RESERVED_SLUGS[EntityType(entity_type)]:
            return True
        # Numeric slugs collide with numeric ids in URLs
        if normalized.isdigit():
            return True
        return raw.endswith(FILE_EXTENSIONS)

    async def validate(
        self,
        slug: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
        check_unique: bool = True,
    ) -> list[ValidationIssue]:
        """Run format, length, reserved and uniqueness checks on a slug.

        Args:
            slug: Candidate slug, expected already normalized
            entity_type: Entity the slug belongs to
            exclude_id: Row to ignore in the uniqueness lookup
            check_unique: Skip the store/cache lookup when False

        Returns:
            All failing checks, empty when the slug is usable
        """
        entity = EntityType(entity_type)
        issues = self.validate_format(slug, entity)

        if self.is_reserved(slug, entity):
            issues.append(
                ValidationIssue(
                    field="slug",
                    rule="reserved",
                    message="This slug is reserved and cannot be used",
                    value=slug,
                    params={"entity_type": entity.value},
                )
            )

        if entity is EntityType.CATEGORY and count_words(slug) > CATEGORY_MAX_WORDS:
            issues.append(
                ValidationIssue(
                    field="slug",
                    rule="too_many_words",
                    message=f"Category slug should be concise (maximum {CATEGORY_MAX_WORDS} words)",
                    value=slug,
                    params={"max_words": CATEGORY_MAX_WORDS},
                )
            )

        if check_unique and not issues:
            if not await self.uniqueness.is_slug_unique(slug, entity, exclude_id):
                issues.append(
                    ValidationIssue(
                        field="slug",
                        rule="unique",
                        message=f"{entity.value.capitalize()} slug must be unique",
                        value=slug,
                        params={"entity_type": entity.value},
                    )
                )
        return issues

    async def is_valid(
        self,
        slug: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
    ) -> bool:
        return not await self.validate(slug, entity_type, exclude_id)

    def base_slug(
        self,
        source: str,
        options: SlugOptions | None = None,
        entity_type: EntityType | str = EntityType.PRODUCT,
    ) -> str:
        """Normalize, truncate, drop stop words and cap the word count.

        Category slugs are capped at CATEGORY_MAX_WORDS whatever options allow.
        """
        options = options or SlugOptions()
        max_words = options.max_words
        if EntityType(entity_type) is EntityType.CATEGORY:
            max_words = min(max_words, CATEGORY_MAX_WORDS)
        base = truncate(normalize(source), options.max_length)
        if options.remove_stop_words:
            base = remove_stop_words(base)
        return limit_words(base, max_words)

    async def generate(
        self,
        source: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
        options: SlugOptions | None = None,
    ) -> str:
        """Build a unique slug from free text.

        Args:
            source: Text to derive the slug from, usually the name
            entity_type: Entity the slug belongs to
            exclude_id: Row whose current slug does not count as a collision
            options: Generation knobs

        Returns:
            The first candidate that passes validate()
        """
        options = options or SlugOptions()
        entity = EntityType(entity_type)
        base = self.base_slug(source, options, entity) or entity.value

        for attempt in range(1, options.max_attempts + 1):
            candidate = base if attempt == 1 else f"{base}-{attempt}"
            if await self.is_valid(candidate, entity, exclude_id):
                return candidate

        fallback = f"{base}-{int(time.time())}"
        logger.warning(
            f"Slug candidates for {source!r} exhausted after {options.max_attempts} attempts, "
            f"using {fallback}"
        )
        return fallback

    async def suggest_alternatives(
        self,
        slug: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
        max_suggestions: int = 5,
    ) -> list[str]:
        """Offer usable variants of a taken or invalid slug.

        Numbered suffixes come first, then random three-character suffixes.
        The list is cached for a short time under the slug's tag.
        """
        entity = EntityType(entity_type)
        base = normalize(slug) or entity.value
        key = f"slug_suggestions:{entity.value}:{base}:{exclude_id or 'none'}:{max_suggestions}"

        cached = await self.uniqueness.cache.get(key)
        if cached is not None:
            return list(cached)

        suggestions: list[str] = []
        for number in range(1, settings.SLUG_MAX_ATTEMPTS + 1):
            if len(suggestions) >= max_suggestions:
                break
            candidate = f"{base}-{number}"
            if await self.is_valid(candidate, entity, exclude_id):
                suggestions.append(candidate)

        alphabet = string.ascii_lowercase + string.digits
        random_attempts = (max_suggestions - len(suggestions)) * 3
        for _ in range(random_attempts):
            if len(suggestions) >= max_suggestions:
                break
            candidate = f"{base}-{''.join(random.choices(alphabet, k=3))}"
            if candidate not in suggestions and await self.is_valid(candidate, entity, exclude_id):
                suggestions.append(candidate)

        await self.uniqueness.cache.set(key, suggestions, self.suggestions_ttl, tags=[slug_tag(entity, base)])
        return suggestions
