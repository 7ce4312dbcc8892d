"""Curation engine services."""

from curation.services.audit_service import AuditService
from curation.services.cache_service import CacheBackend, LocalCache, RedisCache, get_cache
from curation.services.catalog_store import CatalogStore, StoreUnavailableError
from curation.services.product_validator import ProductValidator
from curation.services.publication_gate import PublicationGate
from curation.services.slug_service import SlugService
from curation.services.uniqueness_service import UniquenessService
from curation.services.workflow_service import ProductWorkflowService, WorkflowRejectedError

__all__ = [
    "AuditService",
    "CacheBackend",
    "LocalCache",
    "RedisCache",
    "get_cache",
    "CatalogStore",
    "StoreUnavailableError",
    "ProductValidator",
    "PublicationGate",
    "SlugService",
    "UniquenessService",
    "ProductWorkflowService",
    "WorkflowRejectedError",
]
