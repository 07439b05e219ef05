"""
Consent error taxonomy.

Every failure raised by the consent core derives from ConsentError and
carries a stable ``code`` plus a ``context`` dict so the presentation
layer can render a specific message without parsing strings.
"""

from typing import Any, Optional


class ConsentError(Exception):
    """Base class for consent lifecycle failures."""

    code = "consent_error"

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API/UI consumption."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class MissingIdentity(ConsentError):
    """Raised when no wallet is connected for an operation that needs one."""

    code = "missing_identity"


class ConsentValidationError(ConsentError):
    """Raised when create() input fails local validation."""

    code = "validation_error"


class InvalidSubject(ConsentValidationError):
    """Raised when the subject (patient) identifier is blank."""

    code = "invalid_subject"


class InvalidPurpose(ConsentValidationError):
    """Raised when a purpose is outside the authorized set."""

    code = "invalid_purpose"


class SigningError(ConsentError):
    """Base class for signing-layer failures."""

    code = "signing_error"


class NoSigningIdentity(SigningError):
    """Raised when there is no identity to sign with."""

    code = "no_signing_identity"


class SigningRejected(SigningError):
    """Raised when the signer (or the user behind it) declines to sign."""

    code = "signing_rejected"


class SigningUnavailable(SigningError):
    """Raised for any other signing-layer fault."""

    code = "signing_unavailable"


class IllegalTransition(ConsentError):
    """Raised when a status change is not permitted by the state machine."""

    code = "illegal_transition"


class NotFound(ConsentError):
    """Raised when a consent record id does not resolve."""

    code = "not_found"


class TransitionRejected(ConsentError):
    """Raised when the consent service refuses a status write."""

    code = "transition_rejected"


class TransportFailure(ConsentError):
    """Raised for network or service faults talking to the consent service."""

    code = "transport_failure"

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, context)
        self.status_code = status_code
