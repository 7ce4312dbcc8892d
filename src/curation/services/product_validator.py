"""Validation orchestrator: one entry point per admin operation.

Every call runs shape validation of the raw input, then the business rules of
the operation, then (for verify/publish) the publication gate, and returns a
ValidationResult. Expected business conditions never raise; only programmer
misuse (ValueError/TypeError) and StoreUnavailableError propagate.

The orchestrator writes nothing. ProductWorkflowService applies a valid
result and invalidates the cache.
"""

import logging
from collections import Counter
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from curation.core.config import settings
from curation.models.enums import EntityType, ProductStatus
from curation.schemas.product import (
    PUBLISHED_LOCKED_FIELDS,
    ProductCreate,
    ProductSnapshot,
    ProductUpdate,
    PublishRequest,
)
from curation.schemas.slug import SlugOptions
from curation.schemas.validation import (
    BulkItemResult,
    BulkOperation,
    BulkValidationResult,
    ErrorKind,
    StatusTransition,
    ValidationIssue,
    ValidationOptions,
    ValidationResult,
)
from curation.services.cache_service import CacheBackend
from curation.services.catalog_store import CatalogStore
from curation.services.publication_gate import PublicationGate, check_price
from curation.services.slug_service import SlugService, normalize
from curation.services.status_machine import RESTORE_TARGET, allowed_transitions, can_transition
from curation.services.uniqueness_service import UniquenessService, normalize_name

logger = logging.getLogger(__name__)

# pydantic error type -> rule name reported to admins
PYDANTIC_RULES = {
    "missing": "required",
    "string_too_short": "min_length",
    "string_too_long": "max_length",
    "string_pattern_mismatch": "format",
    "string_type": "string",
    "decimal_max_places": "max_decimal_places",
    "decimal_max_digits": "max_digits",
    "decimal_parsing": "decimal",
    "decimal_type": "decimal",
    "greater_than_equal": "greater_than_equal_to",
    "greater_than": "greater_than",
    "int_parsing": "integer",
    "int_type": "integer",
    "int_from_float": "integer",
    "enum": "valid_source_type",
    "extra_forbidden": "not_allowed",
}


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    return str(value)


def shape_issues(exc: PydanticValidationError) -> list[ValidationIssue]:
    """Convert pydantic errors into shape issues, one per failing field rule."""
    issues = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "payload"
        missing = err["type"] == "missing"
        issues.append(
            ValidationIssue(
                field=field,
                rule=PYDANTIC_RULES.get(err["type"], err["type"]),
                message=err["msg"],
                value=None if missing else _json_safe(err.get("input")),
                kind=ErrorKind.SHAPE,
                params=_json_safe(err.get("ctx") or {}),
            )
        )
    return issues


def not_found(product_id: int) -> ValidationIssue:
    return ValidationIssue(
        field="product_id",
        rule="exists",
        message="Product not found",
        value=product_id,
        kind=ErrorKind.NOT_FOUND,
    )


class ProductValidator:
    """Entry points for create, update, lifecycle, bulk and category activation checks."""

    def __init__(
        self,
        store: CatalogStore,
        uniqueness: UniquenessService,
        slugs: SlugService,
        gate: PublicationGate,
        max_products: int | None = None,
        max_active_categories: int | None = None,
        max_batch_size: int | None = None,
        max_daily_products: int | None = None,
    ):
        """Initialize validator.

        Args:
            store: Catalog store for reads
            uniqueness: Cached slug/name/quota lookups
            slugs: Slug normalization and generation
            gate: Publication gate for verify/publish
            max_products: Catalog cap (non-deleted products)
            max_active_categories: Active category cap
            max_batch_size: Default bulk batch limit
            max_daily_products: Per-admin creations per day
        """
        self.store = store
        self.uniqueness = uniqueness
        self.slugs = slugs
        self.gate = gate
        self.max_products = max_products or settings.MAX_PRODUCTS
        self.max_active_categories = max_active_categories or settings.MAX_ACTIVE_CATEGORIES
        self.max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE
        self.max_daily_products = max_daily_products or settings.MAX_DAILY_PRODUCTS

    @classmethod
    def create(cls, store: CatalogStore, cache: CacheBackend, **limits) -> "ProductValidator":
        """Wire a validator and its collaborators around one store and cache."""
        uniqueness = UniquenessService(store, cache)
        return cls(
            store=store,
            uniqueness=uniqueness,
            slugs=SlugService(uniqueness),
            gate=PublicationGate(uniqueness),
            **limits,
        )

    # ==================== Shared checks ====================

    async def _category_issues(self, category_id: int, require_active: bool) -> list[ValidationIssue]:
        category = await self.store.find_category(category_id)
        if category is None:
            return [
                ValidationIssue(
                    field="category_id",
                    rule="category_exists",
                    message="Category does not exist",
                    value=category_id,
                    kind=ErrorKind.NOT_FOUND,
                )
            ]
        if require_active and not category.active:
            return [
                ValidationIssue(
                    field="category_id",
                    rule="category_active",
                    message=f"Category '{category.name}' is not active",
                    value=category_id,
                )
            ]
        return []

    async def _name_issues(self, name: str, exclude_id: int | None = None) -> list[ValidationIssue]:
        if await self.uniqueness.is_name_unique(name, EntityType.PRODUCT, exclude_id):
            return []
        return [
            ValidationIssue(
                field="name",
                rule="unique",
                message="A product with this name already exists",
                value=name,
            )
        ]

    async def _catalog_capacity_issues(self, reserved: int = 0) -> list[ValidationIssue]:
        # Read uncached, right before the decision
        count = await self.store.count_active_products() + reserved
        if count < self.max_products:
            return []
        return [
            ValidationIssue(
                field="catalog",
                rule="max_products",
                message=f"Catalog is full: at most {self.max_products} products allowed",
                value=count,
                kind=ErrorKind.CAPACITY,
                params={"max": self.max_products},
            )
        ]

    async def _load(self, product_id: int, include_deleted: bool = False) -> ProductSnapshot | None:
        return await self.store.find_product(product_id, include_deleted=include_deleted)

    # ==================== Create / update ====================

    async def validate_create(
        self,
        data: dict[str, Any] | ProductCreate,
        options: ValidationOptions | None = None,
    ) -> ValidationResult:
        """Validate a new product.

        Args:
            data: Raw create payload
            options: admin_id and check_daily_limit are honored

        Returns:
            ValidationResult whose data holds the cleaned payload, with the slug
            normalized or generated from the name when none was sent

        Raises:
            ValueError: check_daily_limit requested without an admin_id
        """
        options = options or ValidationOptions()
        if options.check_daily_limit and options.admin_id is None:
            raise ValueError("check_daily_limit requires admin_id")

        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        try:
            payload = ProductCreate.model_validate(data)
        except PydanticValidationError as e:
            return ValidationResult.build("create", shape_issues(e))

        errors: list[ValidationIssue] = []
        if payload.slug is None:
            slug = await self.slugs.generate(payload.name, EntityType.PRODUCT)
        else:
            slug = normalize(payload.slug)
        errors += await self.slugs.validate(slug, EntityType.PRODUCT)
        errors += await self._name_issues(payload.name)

        if payload.category_id is not None:
            errors += await self._category_issues(payload.category_id, require_active=True)

        price_issue = check_price(payload.market_price)
        if price_issue is not None:
            errors.append(price_issue)

        if options.check_daily_limit:
            today = datetime.now(timezone.utc).date()
            created = await self.uniqueness.products_created_on(options.admin_id, today)
            if created >= self.max_daily_products:
                errors.append(
                    ValidationIssue(
                        field="daily_limit",
                        rule="max_per_day",
                        message="Daily product creation limit reached",
                        value=options.admin_id,
                        kind=ErrorKind.CAPACITY,
                        params={"max": self.max_daily_products, "created": created},
                    )
                )

        errors += await self._catalog_capacity_issues()

        cleaned = payload.model_dump()
        cleaned["slug"] = slug
        cleaned["image_source_type"] = payload.image_source_type.value
        return ValidationResult.build(
            "create",
            errors,
            transition=StatusTransition(from_status=None, to_status=ProductStatus.DRAFT),
            data=cleaned,
        )

    async def validate_update(
        self,
        product_id: int,
        data: dict[str, Any] | ProductUpdate,
        options: ValidationOptions | None = None,
    ) -> ValidationResult:
        """Validate a partial update. Only fields present in data are checked.

        While a product is published, slug, category_id and market_price may
        only be sent with their current values. options is accepted for
        parity with validate_create; no update rule reads it.
        """
        product = await self._load(product_id)
        if product is None:
            return ValidationResult.build("update", [not_found(product_id)])

        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        try:
            patch = ProductUpdate.model_validate(data)
        except PydanticValidationError as e:
            return ValidationResult.build("update", shape_issues(e))

        changes = patch.changes()
        if "slug" in changes:
            changes["slug"] = normalize(changes["slug"])
        if "image_source_type" in changes and changes["image_source_type"] is not None:
            changes["image_source_type"] = changes["image_source_type"].value

        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        if product.is_published:
            for field in PUBLISHED_LOCKED_FIELDS:
                if field in changes and not self._same_value(field, changes[field], getattr(product, field)):
                    errors.append(
                        ValidationIssue(
                            field=field,
                            rule="immutable_while_published",
                            message=f"{field} cannot change while the product is published; archive it first",
                            value=_json_safe(changes[field]),
                            params={"current": _json_safe(getattr(product, field))},
                        )
                    )

        if "slug" in changes and changes["slug"] != product.slug:
            errors += await self.slugs.validate(changes["slug"], EntityType.PRODUCT, exclude_id=product.id)

        if "name" in changes and normalize_name(changes["name"]) != normalize_name(product.name or ""):
            errors += await self._name_issues(changes["name"], exclude_id=product.id)

        if changes.get("category_id") is not None and changes["category_id"] != product.category_id:
            errors += await self._category_issues(changes["category_id"], require_active=False)

        if changes.get("market_price") is not None:
            price_issue = check_price(changes["market_price"])
            if price_issue is not None:
                errors.append(price_issue)

        if not changes:
            warnings.append(
                ValidationIssue(
                    field="payload",
                    rule="no_changes",
                    message="Nothing to update",
                )
            )

        return ValidationResult.build("update", errors, warnings, data=changes)

    @staticmethod
    def _same_value(field: str, new: Any, current: Any) -> bool:
        if field == "market_price" and new is not None and current is not None:
            return Decimal(new) == Decimal(current)
        return new == current

    # ==================== Lifecycle ====================

    def _transition_issue(self, product: ProductSnapshot, target: ProductStatus, rule: str) -> ValidationIssue:
        return ValidationIssue(
            field="status",
            rule=rule,
            message=f"Cannot move product from {product.status} to {target.value}",
            value=product.status,
            params={"allowed": [s.value for s in allowed_transitions(product.status)]},
        )

    async def validate_submit(self, product_id: int) -> ValidationResult:
        """DRAFT -> PENDING_VERIFICATION."""
        product = await self._load(product_id)
        if product is None:
            return ValidationResult.build("submit", [not_found(product_id)])

        target = ProductStatus.PENDING_VERIFICATION
        errors = []
        if not can_transition(product.status, target):
            errors.append(self._transition_issue(product, target, "valid_transition"))
        return ValidationResult.build(
            "submit",
            errors,
            transition=StatusTransition(from_status=product.status_enum, to_status=target),
        )

    async def _gate_result(
        self,
        context: str,
        request: PublishRequest,
        product: ProductSnapshot | None,
        target: ProductStatus,
    ) -> ValidationResult:
        if product is None:
            product = await self._load(request.product_id)
            if product is None:
                return ValidationResult.build(context, [not_found(request.product_id)])
        elif product.id != request.product_id:
            raise ValueError(f"Request is for product {request.product_id}, snapshot is {product.id}")

        if product.is_deleted:
            return ValidationResult.build(context, [not_found(product.id)])

        category = None
        if product.category_id is not None:
            category = await self.store.find_category(product.category_id)
        links = await self.store.find_active_links_for_product(product.id)

        decision = await self.gate.evaluate(product, category, links, target, force=request.force_publish)
        return ValidationResult.build(
            context,
            decision.errors,
            decision.warnings,
            transition=StatusTransition(from_status=product.status_enum, to_status=target),
        )

    async def validate_verify(self, request: PublishRequest, product: ProductSnapshot | None = None) -> ValidationResult:
        """PENDING_VERIFICATION -> VERIFIED through the publication gate."""
        return await self._gate_result("verify", request, product, ProductStatus.VERIFIED)

    async def validate_publish(self, request: PublishRequest, product: ProductSnapshot | None = None) -> ValidationResult:
        """VERIFIED -> PUBLISHED through the publication gate.

        Args:
            request: product_id, acting admin_id and force_publish
            product: Snapshot already loaded by the caller; fetched when None

        Returns:
            With force_publish, gate failures other than state legality are
            returned as warnings and the result stays valid.
        """
        return await self._gate_result("publish", request, product, ProductStatus.PUBLISHED)

    async def validate_archive(self, product_id: int) -> ValidationResult:
        """Archive is legal from VERIFIED or PUBLISHED only."""
        product = await self._load(product_id)
        if product is None:
            return ValidationResult.build("archive", [not_found(product_id)])

        target = ProductStatus.ARCHIVED
        errors = []
        if product.is_archived:
            errors.append(
                ValidationIssue(
                    field="status",
                    rule="not_archived",
                    message="Product is already archived",
                    value=product.status,
                )
            )
        elif not can_transition(product.status, target):
            errors.append(self._transition_issue(product, target, "can_archive"))

        return ValidationResult.build(
            "archive",
            errors,
            transition=StatusTransition(from_status=product.status_enum, to_status=target),
        )

    async def validate_restore(self, product_id: int, reserved_slots: int = 0) -> ValidationResult:
        """Restore an archived or soft-deleted product into PENDING_VERIFICATION.

        A product coming back from the trash counts against the catalog cap
        again and must still own a unique slug.

        Args:
            product_id: Product id
            reserved_slots: Catalog slots already promised earlier in the same batch
        """
        product = await self._load(product_id, include_deleted=True)
        if product is None:
            return ValidationResult.build("restore", [not_found(product_id)])

        errors: list[ValidationIssue] = []
        if not product.is_deleted and not product.is_archived:
            errors.append(
                ValidationIssue(
                    field="status",
                    rule="can_restore",
                    message="Product is not deleted or archived",
                    value=product.status,
                )
            )
        elif product.is_deleted:
            errors += await self._catalog_capacity_issues(reserved=reserved_slots)
            if product.slug and not await self.uniqueness.is_slug_unique(product.slug, EntityType.PRODUCT, product.id):
                errors.append(
                    ValidationIssue(
                        field="slug",
                        rule="unique",
                        message="Another product now uses this slug; change it before restoring",
                        value=product.slug,
                    )
                )

        return ValidationResult.build(
            "restore",
            errors,
            transition=StatusTransition(from_status=product.status_enum, to_status=RESTORE_TARGET),
        )

    async def validate_delete(
        self,
        product_id: int,
        force: bool = False,
        options: ValidationOptions | None = None,
    ) -> ValidationResult:
        """Soft delete. With force, every rule below becomes a warning.

        Args:
            product_id: Product to delete
            force: Downgrade every blocking rule to a warning
            options: options.force counts the same as force
        """
        force = force or (options is not None and options.force)
        product = await self._load(product_id, include_deleted=True)
        if product is None:
            return ValidationResult.build("delete", [not_found(product_id)])

        issues: list[ValidationIssue] = []
        if product.is_deleted:
            issues.append(
                ValidationIssue(
                    field="deleted_at",
                    rule="not_deleted",
                    message="Product is already deleted",
                    value=product.deleted_at.isoformat(),
                )
            )
        if product.is_published:
            issues.append(
                ValidationIssue(
                    field="status",
                    rule="delete_published",
                    message="Published products must be archived before deletion",
                    value=product.status,
                )
            )
        links = await self.store.find_active_links_for_product(product.id)
        if links:
            issues.append(
                ValidationIssue(
                    field="links",
                    rule="has_active_dependencies",
                    message=f"Product has {len(links)} active link(s)",
                    value=len(links),
                    params={"link_ids": [link.id for link in links]},
                )
            )

        if force:
            return ValidationResult.build("delete", [], issues)
        return ValidationResult.build("delete", issues)

    async def validate_purge(self, product_id: int, force: bool = False) -> ValidationResult:
        """Physical removal. Always requires force."""
        product = await self._load(product_id, include_deleted=True)
        if product is None:
            return ValidationResult.build("purge", [not_found(product_id)])

        errors = []
        if not force:
            errors.append(
                ValidationIssue(
                    field="force",
                    rule="force_required",
                    message="Permanent deletion requires force",
                    value=False,
                )
            )
        return ValidationResult.build("purge", errors)

    # ==================== Bulk ====================

    async def validate_bulk(
        self,
        product_ids: list[int],
        operation: BulkOperation | str,
        options: ValidationOptions | None = None,
    ) -> BulkValidationResult:
        """Validate one operation over a batch of ids.

        Batch-level errors (empty batch, too many ids, duplicate ids) are
        reported before any item is looked at. Otherwise every item is
        validated with the singular rules and reported on its own; a failing
        item does not stop the others.

        Raises:
            ValueError: Unknown operation
        """
        operation = BulkOperation(operation)
        options = options or ValidationOptions()
        context = f"bulk_{operation.value}"
        max_batch = options.max_batch_size or self.max_batch_size

        batch_errors = self._batch_issues(product_ids, max_batch)
        if batch_errors:
            return BulkValidationResult(
                is_valid=False,
                errors=batch_errors,
                context=context,
                operation=operation,
            )

        items: list[BulkItemResult] = []
        restored_from_trash = 0
        for index, product_id in enumerate(product_ids):
            if operation is BulkOperation.RESTORE:
                result = await self.validate_restore(product_id, reserved_slots=restored_from_trash)
                if result.is_valid and result.transition and await self._was_deleted(product_id):
                    restored_from_trash += 1
            else:
                result = await self._validate_item(product_id, operation, options)
            items.append(
                BulkItemResult(
                    product_id=product_id,
                    index=index,
                    is_valid=result.is_valid,
                    errors=result.errors,
                    warnings=result.warnings,
                )
            )

        failed = [item for item in items if not item.is_valid]
        if failed:
            logger.debug(f"{context}: {len(failed)} of {len(items)} items rejected")
        return BulkValidationResult(
            is_valid=not failed,
            context=context,
            operation=operation,
            items=items,
        )

    def _batch_issues(self, product_ids: list[int], max_batch: int) -> list[ValidationIssue]:
        if not product_ids:
            return [
                ValidationIssue(
                    field="product_ids",
                    rule="required",
                    message="At least one product id is required",
                    value=[],
                    kind=ErrorKind.SHAPE,
                )
            ]
        bad_ids = [pid for pid in product_ids if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0]
        if bad_ids:
            return [
                ValidationIssue(
                    field="product_ids",
                    rule="integer",
                    message="Product ids must be positive integers",
                    value=_json_safe(bad_ids),
                    kind=ErrorKind.SHAPE,
                )
            ]
        if len(product_ids) > max_batch:
            return [
                ValidationIssue(
                    field="product_ids",
                    rule="batch_size",
                    message=f"Maximum {max_batch} items per batch allowed",
                    value=len(product_ids),
                    kind=ErrorKind.CAPACITY,
                    params={"max": max_batch},
                )
            ]
        duplicates = [pid for pid, seen in Counter(product_ids).items() if seen > 1]
        if duplicates:
            return [
                ValidationIssue(
                    field="product_ids",
                    rule="unique_ids",
                    message="Duplicate IDs found in batch",
                    value=list(product_ids),
                    kind=ErrorKind.SHAPE,
                    params={"duplicates": duplicates},
                )
            ]
        return []

    async def _was_deleted(self, product_id: int) -> bool:
        product = await self._load(product_id, include_deleted=True)
        return product is not None and product.is_deleted

    async def _validate_item(
        self,
        product_id: int,
        operation: BulkOperation,
        options: ValidationOptions,
    ) -> ValidationResult:
        if operation in (BulkOperation.PUBLISH, BulkOperation.VERIFY):
            request = PublishRequest(
                product_id=product_id,
                admin_id=options.admin_id,
                force_publish=options.force,
            )
            if operation is BulkOperation.PUBLISH:
                return await self.validate_publish(request)
            return await self.validate_verify(request)
        if operation is BulkOperation.ARCHIVE:
            return await self.validate_archive(product_id)
        if operation is BulkOperation.DELETE:
            return await self.validate_delete(product_id, options=options)
        if operation is BulkOperation.PURGE:
            return await self.validate_purge(product_id, force=options.force)
        raise ValueError(f"Unsupported bulk operation: {operation}")

    # ==================== Categories ====================

    async def validate_category_activation(self, category_id: int) -> ValidationResult:
        """Activate a category unless MAX_ACTIVE_CATEGORIES are already active."""
        category = await self.store.find_category(category_id)
        if category is None:
            return ValidationResult.build(
                "category_activation",
                [
                    ValidationIssue(
                        field="category_id",
                        rule="exists",
                        message="Category not found",
                        value=category_id,
                        kind=ErrorKind.NOT_FOUND,
                    )
                ],
            )
        if category.active:
            return ValidationResult.build(
                "category_activation",
                [
                    ValidationIssue(
                        field="active",
                        rule="already_active",
                        message=f"Category '{category.name}' is already active",
                        value=True,
                    )
                ],
            )

        count = await self.store.count_active_categories()
        errors = []
        if count >= self.max_active_categories:
            errors.append(
                ValidationIssue(
                    field="active",
                    rule="max_active_categories",
                    message=f"At most {self.max_active_categories} categories can be active",
                    value=count,
                    kind=ErrorKind.CAPACITY,
                    params={"max": self.max_active_categories},
                )
            )
        return ValidationResult.build("category_activation", errors)

    # ==================== Slugs ====================

    async def generate_slug(
        self,
        source: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
        options: SlugOptions | None = None,
    ) -> str:
        return await self.slugs.generate(source, entity_type, exclude_id, options)

    async def is_slug_unique(
        self,
        slug: str,
        entity_type: EntityType | str = EntityType.PRODUCT,
        exclude_id: int | None = None,
    ) -> bool:
        return await self.uniqueness.is_slug_unique(normalize(slug), entity_type, exclude_id)

    async def daily_count(self, admin_id: int, day: date | None = None) -> int:
        """Products admin_id created on day (default today, UTC)."""
        day = day or datetime.now(timezone.utc).date()
        return await self.uniqueness.products_created_on(admin_id, day)
