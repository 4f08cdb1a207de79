"""Unit tests for DocumentStatus state machine"""

import pytest
from domain.documents import (
    DocumentStatus,
    can_transition,
    ALLOWED_TRANSITIONS,
)
from domain.documents.document_status import get_allowed_transitions


class TestDocumentStatusStateMachine:
    """Test DocumentStatus enum and state transition validation"""

    def test_document_status_enum_values(self):
        """Test DocumentStatus enum has all required values"""
        assert DocumentStatus.PENDING.value == "PENDING"
        assert DocumentStatus.ACTIVE.value == "ACTIVE"
        assert DocumentStatus.QUARANTINED.value == "QUARANTINED"

    def test_initial_state_transition(self):
        """Test new documents start PENDING"""
        assert can_transition(None, DocumentStatus.PENDING) is True
        assert can_transition(None, DocumentStatus.ACTIVE) is False
        assert can_transition(None, DocumentStatus.QUARANTINED) is False

    def test_pending_to_active(self):
        """Test PENDING → ACTIVE transition (content check passed)"""
        assert can_transition(DocumentStatus.PENDING, DocumentStatus.ACTIVE) is True

    def test_pending_to_quarantined(self):
        """Test PENDING → QUARANTINED transition (content check failed)"""
        assert can_transition(DocumentStatus.PENDING, DocumentStatus.QUARANTINED) is True

    def test_pending_to_pending_not_allowed(self):
        assert can_transition(DocumentStatus.PENDING, DocumentStatus.PENDING) is False

    @pytest.mark.parametrize("terminal", [DocumentStatus.ACTIVE, DocumentStatus.QUARANTINED])
    def test_terminal_states(self, terminal):
        """Test ACTIVE and QUARANTINED have no outgoing transitions"""
        for target in DocumentStatus:
            assert can_transition(terminal, target) is False
        assert get_allowed_transitions(terminal) == []

    def test_quarantined_cannot_be_released(self):
        """Test a quarantined document can never become downloadable"""
        assert can_transition(DocumentStatus.QUARANTINED, DocumentStatus.ACTIVE) is False

    def test_all_states_have_transition_rules(self):
        for status in DocumentStatus:
            assert status in ALLOWED_TRANSITIONS

    def test_string_values_compare_with_enum(self):
        """Test statuses read back from the database as plain strings still compare"""
        assert DocumentStatus("ACTIVE") is DocumentStatus.ACTIVE
        assert DocumentStatus.ACTIVE == "ACTIVE"
