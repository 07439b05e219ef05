"""Consent status state machine."""

from typing import Set

from consent_registry.core.consent.types import ConsentStatus


# Valid status transitions
VALID_TRANSITIONS: dict[ConsentStatus, Set[ConsentStatus]] = {
    ConsentStatus.PENDING: {
        ConsentStatus.ACTIVE,  # approve
        ConsentStatus.REVOKED,  # reject
    },
    ConsentStatus.ACTIVE: {
        ConsentStatus.REVOKED,  # revoke
    },
    ConsentStatus.REVOKED: set(),  # Terminal state
}

# Status every new record starts in
INITIAL_STATUS = ConsentStatus.PENDING


def can_transition(from_status: ConsentStatus, to_status: ConsentStatus) -> bool:
    """Check if a status transition is valid."""
    return to_status in VALID_TRANSITIONS.get(from_status, set())


def get_valid_transitions(status: ConsentStatus) -> Set[ConsentStatus]:
    """Get all valid transitions from a status."""
    return set(VALID_TRANSITIONS.get(status, set()))


def is_terminal_status(status: ConsentStatus) -> bool:
    """Check if status is terminal (no further transitions)."""
    return not VALID_TRANSITIONS.get(status)
