"""
Consent Module

Signature binding, the consent record store, the lifecycle engine and
the filter projector for patient consent records.

Usage:
    from consent_registry.core.consent import (
        ConsentServiceClient,
        ConsentRecordStore,
        ConsentLifecycleEngine,
        SignatureBinder,
        project,
    )

    client = ConsentServiceClient()
    store = ConsentRecordStore(client)
    engine = ConsentLifecycleEngine(client, SignatureBinder(signer), store=store)

    record = await engine.create("patient-001", "Research Study Participation", "0xAbc...")
    await engine.approve(record.id)
    active = project(store.records, status="active")
"""

# Errors
from consent_registry.core.consent.errors import (
    ConsentError,
    MissingIdentity,
    ConsentValidationError,
    InvalidSubject,
    InvalidPurpose,
    SigningError,
    NoSigningIdentity,
    SigningRejected,
    SigningUnavailable,
    IllegalTransition,
    NotFound,
    TransitionRejected,
    TransportFailure,
)

# Types
from consent_registry.core.consent.types import (
    ALL_STATUSES,
    Purpose,
    ConsentStatus,
    ConsentRecord,
    TransactionRecord,
    ConsentCreatePayload,
    ConsentStatusUpdate,
    PlatformStats,
    coerce_status,
)

# State machine
from consent_registry.core.consent.state import (
    VALID_TRANSITIONS,
    INITIAL_STATUS,
    can_transition,
    get_valid_transitions,
    is_terminal_status,
)

# Signature Binder
from consent_registry.core.consent.binder import (
    CONSENT_MESSAGE_TEMPLATE,
    BoundConsent,
    IdentityProvider,
    SignatureBinder,
    SigningCapability,
    build_consent_message,
    recover_signer,
    verify_consent_signature,
)

# Audit
from consent_registry.core.consent.audit import (
    AuditEvent,
    AuditEventType,
    AuditQuery,
    AuditSeverity,
    AuditSummary,
    ConsentAuditLogger,
)

# Consent Service client
from consent_registry.core.consent.client import (
    ConsentServiceClient,
    normalize_collection,
)

# Record store
from consent_registry.core.consent.store import (
    ConsentRecordStore,
    ConsentScope,
    LoadResult,
)

# Projector
from consent_registry.core.consent.projector import (
    filter_by_status,
    filter_by_wallet,
    project,
    count_by_status,
    shorten_address,
    shorten_hash,
)

# Lifecycle Engine
from consent_registry.core.consent.lifecycle import ConsentLifecycleEngine

__all__ = [
    # Errors
    "ConsentError",
    "MissingIdentity",
    "ConsentValidationError",
    "InvalidSubject",
    "InvalidPurpose",
    "SigningError",
    "NoSigningIdentity",
    "SigningRejected",
    "SigningUnavailable",
    "IllegalTransition",
    "NotFound",
    "TransitionRejected",
    "TransportFailure",
    # Types
    "ALL_STATUSES",
    "Purpose",
    "ConsentStatus",
    "ConsentRecord",
    "TransactionRecord",
    "ConsentCreatePayload",
    "ConsentStatusUpdate",
    "PlatformStats",
    "coerce_status",
    # State machine
    "VALID_TRANSITIONS",
    "INITIAL_STATUS",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_status",
    # Signature Binder
    "CONSENT_MESSAGE_TEMPLATE",
    "BoundConsent",
    "IdentityProvider",
    "SignatureBinder",
    "SigningCapability",
    "build_consent_message",
    "recover_signer",
    "verify_consent_signature",
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditQuery",
    "AuditSeverity",
    "AuditSummary",
    "ConsentAuditLogger",
    # Client
    "ConsentServiceClient",
    "normalize_collection",
    # Store
    "ConsentRecordStore",
    "ConsentScope",
    "LoadResult",
    # Projector
    "filter_by_status",
    "filter_by_wallet",
    "project",
    "count_by_status",
    "shorten_address",
    "shorten_hash",
    # Lifecycle Engine
    "ConsentLifecycleEngine",
]
