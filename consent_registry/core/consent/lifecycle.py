"""
Consent Lifecycle Engine.

Creates signed consent records and moves them through the status state
machine, always against the consent service. After each acknowledged
write the record store is refreshed so the view never drifts from the
authoritative state.
"""

import logging
from typing import Optional, Union

from consent_registry.core.consent.audit import ConsentAuditLogger
from consent_registry.core.consent.binder import IdentityProvider, SignatureBinder
from consent_registry.core.consent.client import ConsentServiceClient
from consent_registry.core.consent.errors import (
    ConsentError,
    IllegalTransition,
    InvalidSubject,
    MissingIdentity,
    NotFound,
)
from consent_registry.core.consent.state import (
    INITIAL_STATUS,
    can_transition,
    get_valid_transitions,
)
from consent_registry.core.consent.store import ConsentRecordStore
from consent_registry.core.consent.types import (
    ConsentCreatePayload,
    ConsentRecord,
    ConsentStatus,
    Purpose,
)

logger = logging.getLogger(__name__)


class ConsentLifecycleEngine:
    """
    Orchestrates consent creation and status transitions.

    Coordinates:
    - Identity and input validation (before any signing or network call)
    - Signature binding
    - Writes to the consent service
    - Store refresh after every acknowledged write
    - Audit trail

    Transitions are checked locally against the state machine for precise
    errors, but the service decides: the current status is always read
    from the service, never from the store.
    """

    def __init__(
        self,
        client: ConsentServiceClient,
        binder: SignatureBinder,
        store: Optional[ConsentRecordStore] = None,
        identity_provider: Optional[IdentityProvider] = None,
        audit_logger: Optional[ConsentAuditLogger] = None,
    ):
        """Initialize engine.

        Args:
            client: Consent Service client
            binder: Signature binder for new consents
            store: Record store to refresh after writes
            identity_provider: Source of the connected wallet
            audit_logger: Audit trail
        """
        self._client = client
        self._binder = binder
        self._store = store
        self._identity_provider = identity_provider
        self._audit = audit_logger

    @property
    def store(self) -> Optional[ConsentRecordStore]:
        return self._store

    def _resolve_identity(self, requester_identity: Optional[str]) -> Optional[str]:
        if requester_identity:
            return requester_identity
        if self._identity_provider is not None:
            return self._identity_provider.current_address()
        return None

    async def create(
        self,
        subject_id: str,
        purpose: Union[Purpose, str],
        requester_identity: Optional[str] = None,
    ) -> ConsentRecord:
        """Sign and submit a new consent in ``pending`` status.

        Args:
            subject_id: Patient the consent concerns
            purpose: One of the authorized purposes
            requester_identity: Wallet address; defaults to the connected wallet

        Returns:
            The record persisted by the service

        Raises:
            MissingIdentity: If no wallet is connected
            InvalidSubject: If ``subject_id`` is blank
            InvalidPurpose: If ``purpose`` is not authorized
            SigningError: Propagated unchanged from the binder
            TransportFailure: If the service write fails
        """
        wallet_address = self._resolve_identity(requester_identity)

        try:
            if not wallet_address:
                raise MissingIdentity("Connect a wallet before creating a consent")

            if not subject_id or not subject_id.strip():
                raise InvalidSubject(
                    "Patient ID is required",
                    context={"subject_id": subject_id},
                )

            resolved_purpose = Purpose.parse(purpose)

            if self._audit:
                self._audit.log_consent_requested(
                    subject_id=subject_id,
                    purpose=resolved_purpose.value,
                    wallet_address=wallet_address,
                )

            bound = await self._binder.bind(subject_id, resolved_purpose, wallet_address)

            payload = ConsentCreatePayload(
                subject_id=subject_id,
                purpose=resolved_purpose,
                wallet_address=bound.wallet_address,
                signature=bound.signature,
                message=bound.message,
            )
            record = await self._client.create_consent(payload)

        except ConsentError as e:
            logger.warning(f"Consent creation failed: {e.code}: {e.message}")
            if self._audit:
                self._audit.log_consent_create_failed(
                    error_code=e.code,
                    error_message=e.message,
                    subject_id=subject_id or None,
                    wallet_address=wallet_address,
                )
            raise

        altered = [
            name for name in ("message", "signature", "wallet_address")
            if getattr(record, name) != getattr(payload, name)
        ]
        if altered:
            logger.error(
                f"Consent service altered the signed statement: id={record.id}, fields={altered}"
            )
            if self._audit:
                self._audit.log_integrity_violation(
                    consent_id=record.id,
                    subject_id=record.subject_id,
                    fields=altered,
                )
        if record.status != INITIAL_STATUS:
            logger.warning(
                f"New consent {record.id} created in status {record.status.value}, "
                f"expected {INITIAL_STATUS.value}"
            )

        logger.info(
            f"Consent created: id={record.id}, subject={record.subject_id}, "
            f"purpose={record.purpose.value}"
        )
        if self._audit:
            self._audit.log_consent_created(
                consent_id=record.id,
                subject_id=record.subject_id,
                purpose=record.purpose.value,
                wallet_address=record.wallet_address,
            )

        await self._refresh_store()
        return record

    async def transition(
        self,
        record_id: str,
        target_status: Union[ConsentStatus, str],
    ) -> ConsentRecord:
        """Move a consent to ``target_status``.

        Args:
            record_id: Consent identifier
            target_status: Desired status

        Returns:
            The updated record as returned by the service

        Raises:
            IllegalTransition: If the state machine forbids the move
            NotFound: If ``record_id`` does not resolve
            TransitionRejected: If the service refuses the write
            TransportFailure: For network or service faults
        """
        target_value = getattr(target_status, "value", target_status)

        try:
            try:
                target = ConsentStatus(target_status)
            except ValueError as e:
                raise IllegalTransition(
                    f"Unknown consent status: {target_status!r}",
                    context={"consent_id": record_id, "target_status": target_value},
                ) from e

            if self._audit:
                self._audit.log_transition_requested(record_id, target.value)

            current = await self._fetch_current(record_id)

            if not can_transition(current.status, target):
                raise IllegalTransition(
                    f"Cannot change consent from {current.status.value} to {target.value}",
                    context={
                        "consent_id": record_id,
                        "current_status": current.status.value,
                        "target_status": target.value,
                        "allowed": sorted(s.value for s in get_valid_transitions(current.status)),
                    },
                )

            updated = await self._client.update_consent_status(record_id, target)

        except ConsentError as e:
            logger.warning(f"Consent transition failed: id={record_id}, {e.code}: {e.message}")
            if self._audit:
                self._audit.log_transition_failed(
                    consent_id=record_id,
                    target_status=str(target_value),
                    error_code=e.code,
                    error_message=e.message,
                )
            raise

        if updated.status != target:
            # Service resolved a concurrent update differently; report what it holds
            logger.warning(
                f"Consent {record_id} is {updated.status.value} after requesting {target.value}"
            )

        logger.info(
            f"Consent transitioned: id={record_id}, "
            f"{current.status.value} -> {updated.status.value}"
        )
        if self._audit:
            self._audit.log_consent_transitioned(
                consent_id=record_id,
                subject_id=updated.subject_id,
                from_status=current.status.value,
                to_status=updated.status.value,
            )

        await self._refresh_store()
        return updated

    async def approve(self, record_id: str) -> ConsentRecord:
        """pending -> active."""
        return await self.transition(record_id, ConsentStatus.ACTIVE)

    async def reject(self, record_id: str) -> ConsentRecord:
        """pending -> revoked."""
        return await self.transition(record_id, ConsentStatus.REVOKED)

    async def revoke(self, record_id: str) -> ConsentRecord:
        """active -> revoked."""
        return await self.transition(record_id, ConsentStatus.REVOKED)

    async def _fetch_current(self, record_id: str) -> ConsentRecord:
        """Read a record's authoritative state through the list endpoint.

        A record already in the store narrows the request to its subject.
        When that misses, the unrestricted list is searched before giving up.

        Raises:
            NotFound: If no listed record has ``record_id``
        """
        known = self._store.get(record_id) if self._store is not None else None
        subjects = [known.subject_id, None] if known is not None else [None]

        for subject_id in subjects:
            for record in await self._client.list_consents(subject_id, None):
                if record.id == record_id:
                    return record

        raise NotFound(
            f"Consent {record_id} not found",
            context={"consent_id": record_id},
        )

    async def _refresh_store(self) -> None:
        """Reload the store's current scope after an acknowledged write.

        A failed refresh leaves the store empty with its error set; the
        write itself already succeeded and is not reported as failed.
        """
        if self._store is None:
            return
        result = await self._store.refresh()
        if result.error is not None:
            logger.warning(f"Store refresh after write failed: {result.error}")
