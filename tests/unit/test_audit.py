"""Tests for the consent audit trail."""

import pytest

from consent_registry.core.consent import (
    AuditEventType,
    AuditQuery,
    AuditSeverity,
    ConsentAuditLogger,
)


@pytest.fixture
def audit_logger():
    """Create audit logger for testing."""
    return ConsentAuditLogger(enable_hash_chain=True, log_to_stdout=False)


class TestAuditLogger:
    """Test ConsentAuditLogger."""

    def test_hash_chain(self, audit_logger):
        """Test events are chained from the genesis hash."""
        first = audit_logger.log_consent_requested("patient-001", "Research Study Participation", "0xABC")
        second = audit_logger.log_consent_created(
            "consent-1", "patient-001", "Research Study Participation", "0xABC"
        )

        assert first.previous_hash == "genesis"
        assert second.previous_hash == first.event_hash
        assert audit_logger.verify_chain_integrity() == (True, None)

    def test_tampering_detected(self, audit_logger):
        audit_logger.log_consent_requested("patient-001", "Research Study Participation", "0xABC")
        audit_logger.log_transition_requested("consent-1", "active")

        audit_logger._events[0].subject_id = "patient-999"

        is_valid, error = audit_logger.verify_chain_integrity()
        assert not is_valid
        assert "event 0" in error

    def test_chain_disabled(self):
        logger = ConsentAuditLogger(enable_hash_chain=False, log_to_stdout=False)

        event = logger.log_transition_requested("consent-1", "active")

        assert event.event_hash is None
        assert logger.verify_chain_integrity() == (True, None)

    def test_revocation_logged_as_warning(self, audit_logger):
        event = audit_logger.log_consent_transitioned("consent-1", "patient-001", "active", "revoked")

        assert event.severity == AuditSeverity.WARNING

    def test_query_and_summary(self, audit_logger):
        audit_logger.log_consent_requested("patient-001", "Research Study Participation", "0xABC")
        audit_logger.log_consent_create_failed("signing_rejected", "declined", "patient-001", "0xABC")
        audit_logger.log_consents_loaded("patient-002", "all", 3)

        failures = audit_logger.query(AuditQuery(outcome="failure"))
        trail = audit_logger.get_subject_audit_trail("patient-001")
        summary = audit_logger.get_summary()

        assert [e.event_type for e in failures] == [AuditEventType.CONSENT_CREATE_FAILED]
        assert len(trail) == 2
        assert summary.total_events == 3
        assert summary.events_by_outcome == {"success": 2, "failure": 1}

    def test_query_pagination(self, audit_logger):
        for i in range(5):
            audit_logger.log_transition_requested(f"consent-{i}", "active")

        page = audit_logger.query(AuditQuery(limit=2, offset=1))

        assert [e.consent_id for e in page] == ["consent-1", "consent-2"]

    def test_to_json(self, audit_logger):
        event = audit_logger.log_integrity_violation("consent-1", "patient-001", ["signature"])

        assert '"record_integrity_violation"' in event.to_json()
        assert event.to_dict()["details"] == {"fields": ["signature"]}
