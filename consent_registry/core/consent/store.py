"""
Consent Record Store.

Client-side view of the consent records last loaded for a filter scope.
The consent service is authoritative: the store never edits a record, it
only replaces its content with the result of the latest load.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from consent_registry.core.consent.audit import ConsentAuditLogger
from consent_registry.core.consent.client import ConsentServiceClient
from consent_registry.core.consent.errors import ConsentError
from consent_registry.core.consent.types import (
    ALL_STATUSES,
    ConsentRecord,
    ConsentStatus,
    coerce_status,
)

logger = logging.getLogger(__name__)

# Fields that must never change once a record is persisted
IMMUTABLE_FIELDS = ("subject_id", "purpose", "wallet_address", "message", "signature")


@dataclass(frozen=True)
class ConsentScope:
    """The (subject, status) pair a load targets. None means unrestricted."""

    subject_id: Optional[str] = None
    status: Optional[ConsentStatus] = None

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "status": self.status.value if self.status else ALL_STATUSES,
        }


@dataclass(frozen=True)
class LoadResult:
    """Outcome of a load.

    ``applied`` is False when a newer load superseded this one before its
    response arrived; such a result carries no records and must not be
    displayed.
    """

    scope: ConsentScope
    records: tuple[ConsentRecord, ...] = ()
    error: Optional[ConsentError] = None
    applied: bool = True

    @property
    def ok(self) -> bool:
        return self.applied and self.error is None


class ConsentRecordStore:
    """
    Cache of the most recent consent load.

    Each load() becomes the current scope. Responses are tagged with the
    generation of the request that produced them and only the latest
    generation is ever materialized. A failed load empties the store
    (stale data is never shown as current) and hands the error back.

    Usage:
        store = ConsentRecordStore(client)
        result = await store.load(status="pending")
        if result.error:
            show_error(result.error)
        render(store.records)
    """

    def __init__(
        self,
        client: ConsentServiceClient,
        audit_logger: Optional[ConsentAuditLogger] = None,
    ):
        """Initialize store.

        Args:
            client: Consent Service client
            audit_logger: Optional audit trail for loads and integrity issues
        """
        self._client = client
        self._audit = audit_logger

        self._records: tuple[ConsentRecord, ...] = ()
        self._error: Optional[ConsentError] = None
        self._scope = ConsentScope()

        self._generation = 0
        self._resolved_generation = 0

        # Last observed version of every record, for immutability checks
        self._seen: dict[str, ConsentRecord] = {}

    @property
    def records(self) -> tuple[ConsentRecord, ...]:
        """Records of the last applied load, in server order."""
        return self._records

    @property
    def error(self) -> Optional[ConsentError]:
        """Error of the last applied load, if it failed."""
        return self._error

    @property
    def scope(self) -> ConsentScope:
        """Scope of the most recently issued load."""
        return self._scope

    @property
    def is_loading(self) -> bool:
        """True while the most recently issued load has not resolved."""
        return self._resolved_generation < self._generation

    async def load(
        self,
        subject_id: Optional[str] = None,
        status: Union[ConsentStatus, str, None] = None,
    ) -> LoadResult:
        """Load consents for a scope and make it the current view.

        Args:
            subject_id: Patient to restrict to (None for all)
            status: Status to restrict to (None or "all" for all)

        Returns:
            LoadResult; on failure ``records`` is empty and ``error`` is set
        """
        scope = ConsentScope(subject_id=subject_id, status=coerce_status(status))

        self._generation += 1
        generation = self._generation
        self._scope = scope

        records: tuple[ConsentRecord, ...] = ()
        error: Optional[ConsentError] = None
        try:
            records = tuple(await self._client.list_consents(scope.subject_id, scope.status))
        except ConsentError as e:
            error = e

        if generation != self._generation:
            logger.debug(
                f"Discarding superseded consent load: scope={scope.to_dict()}, "
                f"generation={generation}, current={self._generation}"
            )
            return LoadResult(scope=scope, applied=False)

        self._resolved_generation = generation

        if error is not None:
            logger.warning(f"Consent load failed: scope={scope.to_dict()}, error={error}")
            self._records = ()
            self._error = error
            if self._audit:
                self._audit.log_consents_load_failed(
                    subject_id=scope.subject_id,
                    status=scope.to_dict()["status"],
                    error_code=error.code,
                    error_message=error.message,
                )
            return LoadResult(scope=scope, error=error)

        self._check_integrity(records)
        self._forget_missing(scope, records)
        self._records = records
        self._error = None

        logger.debug(f"Loaded {len(records)} consents: scope={scope.to_dict()}")
        if self._audit:
            self._audit.log_consents_loaded(
                subject_id=scope.subject_id,
                status=scope.to_dict()["status"],
                count=len(records),
            )

        return LoadResult(scope=scope, records=records)

    async def refresh(self) -> LoadResult:
        """Reload the current scope."""
        return await self.load(self._scope.subject_id, self._scope.status)

    def get(self, consent_id: str) -> Optional[ConsentRecord]:
        """Find a record in the current view."""
        for record in self._records:
            if record.id == consent_id:
                return record
        return None

    def _check_integrity(self, records: tuple[ConsentRecord, ...]) -> None:
        """Compare incoming records with what was seen before.

        The service stays authoritative, so violations are reported, not
        corrected.
        """
        for record in records:
            previous = self._seen.get(record.id)
            self._seen[record.id] = record
            if previous is None:
                continue

            changed = [
                name for name in IMMUTABLE_FIELDS
                if getattr(previous, name) != getattr(record, name)
            ]
            # The anchor hash may be set once, never cleared or replaced
            if previous.blockchain_tx_hash and (
                record.blockchain_tx_hash != previous.blockchain_tx_hash
            ):
                changed.append("blockchain_tx_hash")

            if previous.status == ConsentStatus.REVOKED and record.status != ConsentStatus.REVOKED:
                changed.append("status")

            if changed:
                logger.error(
                    f"Consent {record.id} changed immutable fields between loads: {changed}"
                )
                if self._audit:
                    self._audit.log_integrity_violation(
                        consent_id=record.id,
                        subject_id=record.subject_id,
                        fields=changed,
                    )

    def _forget_missing(self, scope: ConsentScope, records: tuple[ConsentRecord, ...]) -> None:
        """Drop tracked records a complete load no longer returns.

        Only loads without a status filter are complete: unrestricted ones
        for every record, subject-scoped ones for that subject's records.
        """
        if scope.status is not None:
            return
        present = {r.id for r in records}
        self._seen = {
            record_id: record
            for record_id, record in self._seen.items()
            if record_id in present
            or (scope.subject_id is not None and record.subject_id != scope.subject_id)
        }
