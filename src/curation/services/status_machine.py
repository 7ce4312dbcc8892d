"""Product status state machine.

Plain transitions (exactly these five):

    draft                -> pending_verification
    pending_verification -> verified
    verified             -> published
    verified             -> archived
    published            -> archived

Leaving ARCHIVED (or the trash) goes through the restore operation of
ProductValidator, never through can_transition.
"""

import logging

from curation.models.enums import ProductStatus

logger = logging.getLogger(__name__)

TRANSITIONS: dict[ProductStatus, frozenset[ProductStatus]] = {
    ProductStatus.DRAFT: frozenset({ProductStatus.PENDING_VERIFICATION}),
    ProductStatus.PENDING_VERIFICATION: frozenset({ProductStatus.VERIFIED}),
    ProductStatus.VERIFIED: frozenset({ProductStatus.PUBLISHED, ProductStatus.ARCHIVED}),
    ProductStatus.PUBLISHED: frozenset({ProductStatus.ARCHIVED}),
    ProductStatus.ARCHIVED: frozenset(),
}

# Where the restore operation lands, from archive or from the trash
RESTORE_TARGET = ProductStatus.PENDING_VERIFICATION


def parse_status(value: ProductStatus | str) -> ProductStatus:
    """Parse a caller-supplied status.

    Raises:
        TypeError: value is neither a ProductStatus nor a string
        ValueError: value is a string outside the enum
    """
    if isinstance(value, ProductStatus):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Status must be a ProductStatus or str, got {type(value).__name__}")
    try:
        return ProductStatus(value.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown product status: {value!r}") from None


def _stored_status(value: ProductStatus | str | None) -> ProductStatus | None:
    """Read a status coming from storage. Unknown values yield None."""
    if isinstance(value, ProductStatus):
        return value
    try:
        return ProductStatus(value)
    except ValueError:
        logger.warning(f"Unknown stored product status {value!r}, rejecting transition")
        return None


def can_transition(current: ProductStatus | str | None, requested: ProductStatus | str) -> bool:
    """Whether current -> requested is one of the plain transitions.

    Args:
        current: Stored status (raw string allowed; unknown values fail closed)
        requested: Target status supplied by the caller

    Returns:
        True only for the five legal edges. Self transitions are False.

    Raises:
        TypeError: requested is not a ProductStatus or string
        ValueError: requested is a string outside the enum
    """
    target = parse_status(requested)
    source = _stored_status(current)
    if source is None:
        return False
    return target in TRANSITIONS[source]


def allowed_transitions(current: ProductStatus | str | None) -> list[ProductStatus]:
    """Legal plain targets from current, in lifecycle order."""
    source = _stored_status(current)
    if source is None:
        return []
    return [status for status in ProductStatus if status in TRANSITIONS[source]]
