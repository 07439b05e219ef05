"""
Consent Audit Trail

Tamper-evident record of every consent action taken through this client:
creation attempts, status transitions, loads and integrity problems
observed in data coming back from the consent service.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"


class AuditEventType(str, Enum):
    """Types of consent audit events."""

    # Creation
    CONSENT_REQUESTED = "consent_requested"
    CONSENT_CREATED = "consent_created"
    CONSENT_CREATE_FAILED = "consent_create_failed"

    # Status changes
    TRANSITION_REQUESTED = "transition_requested"
    CONSENT_TRANSITIONED = "consent_transitioned"
    TRANSITION_FAILED = "transition_failed"

    # Reads
    CONSENTS_LOADED = "consents_loaded"
    CONSENTS_LOAD_FAILED = "consents_load_failed"

    # Integrity
    RECORD_INTEGRITY_VIOLATION = "record_integrity_violation"


class AuditSeverity(str, Enum):
    """Severity levels for audit events."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class AuditEvent:
    """Individual audit event record."""

    id: UUID
    timestamp: datetime
    event_type: AuditEventType
    severity: AuditSeverity

    # Actor / subject
    subject_id: Optional[str] = None
    wallet_address: Optional[str] = None
    consent_id: Optional[str] = None

    # Event details
    action: str = ""
    details: dict = field(default_factory=dict)

    # Outcome
    outcome: str = "success"  # success, failure
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # Integrity
    previous_hash: Optional[str] = None
    event_hash: Optional[str] = None

    def compute_hash(self, previous_hash: str = "") -> str:
        """Compute hash for tamper detection."""
        data = {
            "id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "subject_id": self.subject_id,
            "wallet_address": self.wallet_address,
            "consent_id": self.consent_id,
            "action": self.action,
            "outcome": self.outcome,
            "previous_hash": previous_hash,
        }
        content = json.dumps(data, sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()

    def to_dict(self) -> dict:
        """Convert to dictionary for storage/transmission."""
        return {
            "id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "subject_id": self.subject_id,
            "wallet_address": self.wallet_address,
            "consent_id": self.consent_id,
            "action": self.action,
            "details": self.details,
            "outcome": self.outcome,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "event_hash": self.event_hash,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())


@dataclass
class AuditQuery:
    """Query parameters for searching the audit trail."""

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    event_types: Optional[list[AuditEventType]] = None
    severity: Optional[AuditSeverity] = None
    subject_id: Optional[str] = None
    consent_id: Optional[str] = None
    wallet_address: Optional[str] = None
    outcome: Optional[str] = None
    limit: int = 100
    offset: int = 0


@dataclass
class AuditSummary:
    """Summary of audit events for reporting."""

    total_events: int
    events_by_type: dict[str, int]
    events_by_outcome: dict[str, int]

    def to_dict(self) -> dict:
        return {
            "total_events": self.total_events,
            "events_by_type": self.events_by_type,
            "events_by_outcome": self.events_by_outcome,
        }


# ==================================
# Audit Logger Class
# ==================================

class ConsentAuditLogger:
    """
    Hash-chained audit log of consent actions.

    Events are kept in memory and mirrored to the standard logger. Each
    event's hash covers the previous event's hash, so editing or dropping
    an entry breaks verify_chain_integrity().
    """

    def __init__(self, enable_hash_chain: bool = True, log_to_stdout: bool = True):
        """
        Initialize audit logger.

        Args:
            enable_hash_chain: Enable tamper-evident hash chaining
            log_to_stdout: Also log to standard logging
        """
        self.enable_hash_chain = enable_hash_chain
        self.log_to_stdout = log_to_stdout

        self._events: list[AuditEvent] = []
        self._last_hash: str = GENESIS_HASH

    @property
    def events(self) -> list[AuditEvent]:
        """Copy of all recorded events, oldest first."""
        return list(self._events)

    def log(
        self,
        event_type: AuditEventType,
        severity: AuditSeverity,
        action: str,
        subject_id: Optional[str] = None,
        wallet_address: Optional[str] = None,
        consent_id: Optional[str] = None,
        details: Optional[dict] = None,
        outcome: str = "success",
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        """
        Log an audit event.

        Returns:
            Created AuditEvent
        """
        event = AuditEvent(
            id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            event_type=event_type,
            severity=severity,
            subject_id=subject_id,
            wallet_address=wallet_address,
            consent_id=consent_id,
            action=action,
            details=details or {},
            outcome=outcome,
            error_code=error_code,
            error_message=error_message,
        )

        if self.enable_hash_chain:
            event.previous_hash = self._last_hash
            event.event_hash = event.compute_hash(self._last_hash)
            self._last_hash = event.event_hash

        self._events.append(event)

        if self.log_to_stdout:
            log_level = getattr(logging, severity.value.upper(), logging.INFO)
            logger.log(
                log_level,
                f"AUDIT: {event_type.value} | {action} | "
                f"consent={consent_id} | subject={subject_id} | outcome={outcome}"
            )

        return event

    # ==================================
    # Convenience Methods
    # ==================================

    def log_consent_requested(self, subject_id: str, purpose: str, wallet_address: str) -> AuditEvent:
        """Log a signing request for a new consent."""
        return self.log(
            event_type=AuditEventType.CONSENT_REQUESTED,
            severity=AuditSeverity.INFO,
            action=f"Consent requested: {purpose}",
            subject_id=subject_id,
            wallet_address=wallet_address,
            details={"purpose": purpose},
        )

    def log_consent_created(
        self,
        consent_id: str,
        subject_id: str,
        purpose: str,
        wallet_address: str,
    ) -> AuditEvent:
        """Log a consent persisted by the service."""
        return self.log(
            event_type=AuditEventType.CONSENT_CREATED,
            severity=AuditSeverity.INFO,
            action=f"Consent created: {purpose}",
            subject_id=subject_id,
            wallet_address=wallet_address,
            consent_id=consent_id,
            details={"purpose": purpose},
        )

    def log_consent_create_failed(
        self,
        error_code: str,
        error_message: str,
        subject_id: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> AuditEvent:
        """Log a failed creation attempt."""
        return self.log(
            event_type=AuditEventType.CONSENT_CREATE_FAILED,
            severity=AuditSeverity.WARNING,
            action=f"Consent creation failed: {error_code}",
            subject_id=subject_id,
            wallet_address=wallet_address,
            outcome="failure",
            error_code=error_code,
            error_message=error_message,
        )

    def log_transition_requested(self, consent_id: str, target_status: str) -> AuditEvent:
        """Log a status change request."""
        return self.log(
            event_type=AuditEventType.TRANSITION_REQUESTED,
            severity=AuditSeverity.INFO,
            action=f"Transition requested: -> {target_status}",
            consent_id=consent_id,
            details={"target_status": target_status},
        )

    def log_consent_transitioned(
        self,
        consent_id: str,
        subject_id: str,
        from_status: str,
        to_status: str,
    ) -> AuditEvent:
        """Log a status change acknowledged by the service."""
        severity = AuditSeverity.WARNING if to_status == "revoked" else AuditSeverity.INFO
        return self.log(
            event_type=AuditEventType.CONSENT_TRANSITIONED,
            severity=severity,
            action=f"Consent {from_status} -> {to_status}",
            subject_id=subject_id,
            consent_id=consent_id,
            details={"from_status": from_status, "to_status": to_status},
        )

    def log_transition_failed(
        self,
        consent_id: str,
        target_status: str,
        error_code: str,
        error_message: str,
    ) -> AuditEvent:
        """Log a failed status change."""
        return self.log(
            event_type=AuditEventType.TRANSITION_FAILED,
            severity=AuditSeverity.WARNING,
            action=f"Transition to {target_status} failed: {error_code}",
            consent_id=consent_id,
            details={"target_status": target_status},
            outcome="failure",
            error_code=error_code,
            error_message=error_message,
        )

    def log_consents_loaded(
        self,
        subject_id: Optional[str],
        status: Optional[str],
        count: int,
    ) -> AuditEvent:
        """Log a materialized load (access to consent data)."""
        return self.log(
            event_type=AuditEventType.CONSENTS_LOADED,
            severity=AuditSeverity.DEBUG,
            action=f"Loaded {count} consents",
            subject_id=subject_id,
            details={"status": status, "count": count},
        )

    def log_consents_load_failed(
        self,
        subject_id: Optional[str],
        status: Optional[str],
        error_code: str,
        error_message: str,
    ) -> AuditEvent:
        """Log a failed load."""
        return self.log(
            event_type=AuditEventType.CONSENTS_LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            action="Consent load failed",
            subject_id=subject_id,
            details={"status": status},
            outcome="failure",
            error_code=error_code,
            error_message=error_message,
        )

    def log_integrity_violation(
        self,
        consent_id: str,
        subject_id: str,
        fields: list[str],
    ) -> AuditEvent:
        """Log an immutable field that changed between loads."""
        return self.log(
            event_type=AuditEventType.RECORD_INTEGRITY_VIOLATION,
            severity=AuditSeverity.ERROR,
            action=f"Immutable fields changed: {', '.join(fields)}",
            subject_id=subject_id,
            consent_id=consent_id,
            details={"fields": fields},
            outcome="failure",
            error_code="record_integrity_violation",
        )

    # ==================================
    # Query Methods
    # ==================================

    def query(self, query: AuditQuery) -> list[AuditEvent]:
        """
        Query audit events.

        Args:
            query: Query parameters

        Returns:
            List of matching AuditEvents
        """
        results = []

        for event in self._events:
            if query.start_time and event.timestamp < query.start_time:
                continue
            if query.end_time and event.timestamp > query.end_time:
                continue
            if query.event_types and event.event_type not in query.event_types:
                continue
            if query.severity and event.severity != query.severity:
                continue
            if query.subject_id and event.subject_id != query.subject_id:
                continue
            if query.consent_id and event.consent_id != query.consent_id:
                continue
            if query.wallet_address and event.wallet_address != query.wallet_address:
                continue
            if query.outcome and event.outcome != query.outcome:
                continue

            results.append(event)

        return results[query.offset:query.offset + query.limit]

    def get_summary(self) -> AuditSummary:
        """Get counts of recorded events by type and outcome."""
        events_by_type: dict[str, int] = {}
        events_by_outcome: dict[str, int] = {}

        for event in self._events:
            events_by_type[event.event_type.value] = events_by_type.get(event.event_type.value, 0) + 1
            events_by_outcome[event.outcome] = events_by_outcome.get(event.outcome, 0) + 1

        return AuditSummary(
            total_events=len(self._events),
            events_by_type=events_by_type,
            events_by_outcome=events_by_outcome,
        )

    def verify_chain_integrity(self) -> tuple[bool, Optional[str]]:
        """
        Verify the integrity of the hash chain.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not self.enable_hash_chain:
            return True, None

        previous_hash = GENESIS_HASH

        for i, event in enumerate(self._events):
            expected_hash = event.compute_hash(previous_hash)

            if event.event_hash != expected_hash:
                return False, f"Hash mismatch at event {i} (id={event.id})"

            if event.previous_hash != previous_hash:
                return False, f"Chain broken at event {i} (id={event.id})"

            previous_hash = event.event_hash

        return True, None

    def get_subject_audit_trail(self, subject_id: str, limit: int = 100) -> list[AuditEvent]:
        """Get the audit trail for one patient."""
        return self.query(AuditQuery(subject_id=subject_id, limit=limit))
