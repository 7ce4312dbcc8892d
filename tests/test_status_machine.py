"""Tests for the product status state machine."""

import itertools
import logging

import pytest

from curation.models.enums import ProductStatus
from curation.services.status_machine import allowed_transitions, can_transition, parse_status

LEGAL_EDGES = {
    (ProductStatus.DRAFT, ProductStatus.PENDING_VERIFICATION),
    (ProductStatus.PENDING_VERIFICATION, ProductStatus.VERIFIED),
    (ProductStatus.VERIFIED, ProductStatus.PUBLISHED),
    (ProductStatus.VERIFIED, ProductStatus.ARCHIVED),
    (ProductStatus.PUBLISHED, ProductStatus.ARCHIVED),
}


class TestCanTransition:
    """Test the legal edge table."""

    @pytest.mark.parametrize(
        "current,requested",
        list(itertools.product(ProductStatus, ProductStatus)),
    )
    def test_every_pair(self, current, requested):
        """Only the five documented edges are legal."""
        assert can_transition(current, requested) is ((current, requested) in LEGAL_EDGES)

    @pytest.mark.parametrize("status", list(ProductStatus))
    def test_self_transition_rejected(self, status):
        """current == requested is never a valid transition."""
        assert can_transition(status, status) is False

    def test_accepts_raw_strings(self):
        """Stored values arrive as plain strings."""
        assert can_transition("verified", "published") is True
        assert can_transition("draft", ProductStatus.PUBLISHED) is False

    def test_archived_is_not_left_by_plain_transition(self):
        """Leaving ARCHIVED is reserved for the restore operation."""
        assert allowed_transitions(ProductStatus.ARCHIVED) == []

    def test_unknown_stored_state_fails_closed(self, caplog):
        """Corrupt stored status returns False and logs a warning."""
        with caplog.at_level(logging.WARNING):
            assert can_transition("legacy_state", ProductStatus.PUBLISHED) is False
        assert "legacy_state" in caplog.text

    def test_none_stored_state_fails_closed(self):
        assert can_transition(None, ProductStatus.PENDING_VERIFICATION) is False

    def test_unparseable_requested_raises(self):
        """A bad value supplied by the caller is a programmer error."""
        with pytest.raises(ValueError):
            can_transition(ProductStatus.DRAFT, "launched")

    def test_wrong_type_requested_raises(self):
        with pytest.raises(TypeError):
            can_transition(ProductStatus.DRAFT, 3)


class TestHelpers:
    """Test parse_status and allowed_transitions."""

    def test_parse_status_normalizes_case(self):
        assert parse_status(" Published ") is ProductStatus.PUBLISHED

    def test_parse_status_rejects_unknown(self):
        with pytest.raises(ValueError):
            parse_status("gone")

    def test_allowed_transitions_from_verified(self):
        assert allowed_transitions("verified") == [ProductStatus.PUBLISHED, ProductStatus.ARCHIVED]

    def test_allowed_transitions_unknown_state(self):
        assert allowed_transitions("bogus") == []
