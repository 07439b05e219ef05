"""Shared fixtures: an in-memory consent service and a recording signer."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from consent_registry.core.consent import (
    ConsentAuditLogger,
    ConsentCreatePayload,
    ConsentLifecycleEngine,
    ConsentRecord,
    ConsentRecordStore,
    ConsentStatus,
    NotFound,
    SignatureBinder,
    TransitionRejected,
    TransportFailure,
    build_consent_message,
)
from consent_registry.infra.wallet import StaticIdentityProvider

WALLET = "0xABC0000000000000000000000000000000000001"
OTHER_WALLET = "0xDEF0000000000000000000000000000000000002"


class FakeConsentService:
    """In-memory stand-in for ConsentServiceClient.

    Lists newest first, like the real service, and offers only the list,
    create and status-update endpoints. ``calls`` records every request
    in order.
    """

    def __init__(self):
        self._records: dict[str, dict] = {}
        self._counter = 0
        self._clock = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        self._gates: dict[tuple, asyncio.Event] = {}
        self.calls: list[tuple] = []
        self.fail_lists = False
        self.reject_updates = False
        self.fail_lists_after_update = False
        self.stored_signature: Optional[str] = None

    def seed(
        self,
        subject_id: str = "patient-001",
        status: ConsentStatus = ConsentStatus.PENDING,
        purpose: str = "Research Study Participation",
        wallet_address: str = WALLET,
    ) -> ConsentRecord:
        """Insert a record directly, bypassing signing."""
        self._counter += 1
        self._clock += timedelta(minutes=1)
        record_id = f"consent-{self._counter}"
        self._records[record_id] = {
            "id": record_id,
            "subjectId": subject_id,
            "purpose": purpose,
            "walletAddress": wallet_address,
            "message": build_consent_message(subject_id, purpose),
            "signature": f"0xsig{self._counter}",
            "status": ConsentStatus(status).value,
            "createdAt": self._clock.isoformat(),
        }
        return ConsentRecord.from_dict(self._records[record_id])

    def raw(self, record_id: str) -> dict:
        return self._records[record_id]

    def remove(self, record_id: str) -> None:
        del self._records[record_id]

    def hold(self, subject_id: Optional[str], status: Optional[ConsentStatus]) -> asyncio.Event:
        """Block list requests for this scope until the returned event is set."""
        gate = asyncio.Event()
        self._gates[(subject_id, status)] = gate
        return gate

    async def list_consents(self, subject_id=None, status=None):
        self.calls.append(("list", subject_id, status))
        gate = self._gates.get((subject_id, status))
        if gate is not None:
            await gate.wait()
        if self.fail_lists:
            raise TransportFailure("Failed to fetch consents", status_code=503)

        records = [
            ConsentRecord.from_dict(r)
            for r in reversed(list(self._records.values()))
            if (subject_id is None or r["subjectId"] == subject_id)
            and (status is None or r["status"] == ConsentStatus(status).value)
        ]
        return records

    async def create_consent(self, payload: ConsentCreatePayload):
        self.calls.append(("create", payload.subject_id))
        self._counter += 1
        self._clock += timedelta(minutes=1)
        record_id = f"consent-{self._counter}"
        self._records[record_id] = dict(
            payload.to_wire(),
            id=record_id,
            status=ConsentStatus.PENDING.value,
            createdAt=self._clock.isoformat(),
        )
        if self.stored_signature is not None:
            self._records[record_id]["signature"] = self.stored_signature
        return ConsentRecord.from_dict(self._records[record_id])

    async def update_consent_status(self, consent_id, status):
        self.calls.append(("update", consent_id, ConsentStatus(status).value))
        if consent_id not in self._records:
            raise NotFound(f"Consent {consent_id} not found")
        if self.reject_updates:
            raise TransitionRejected("Concurrent update", context={"consent_id": consent_id})
        self._records[consent_id]["status"] = ConsentStatus(status).value
        if self.fail_lists_after_update:
            self.fail_lists = True
        return ConsentRecord.from_dict(self._records[consent_id])

    def call_kinds(self) -> list[str]:
        return [c[0] for c in self.calls]


class RecordingSigner:
    """Signing capability that records its calls and returns a fixed signature."""

    def __init__(self, signature: str = "0xdeadbeef", error: Optional[Exception] = None):
        self.signature = signature
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def sign(self, message: str, identity: str) -> str:
        self.calls.append((message, identity))
        if self.error is not None:
            raise self.error
        return self.signature


@pytest.fixture
def service():
    """In-memory consent service."""
    return FakeConsentService()


@pytest.fixture
def signer():
    """Recording signer."""
    return RecordingSigner()


@pytest.fixture
def identity():
    """Connected wallet."""
    return StaticIdentityProvider(WALLET)


@pytest.fixture
def audit():
    """Audit logger without stdout mirroring."""
    return ConsentAuditLogger(log_to_stdout=False)


@pytest.fixture
def store(service, audit):
    """Record store over the fake service."""
    return ConsentRecordStore(service, audit_logger=audit)


@pytest.fixture
def engine(service, signer, store, identity, audit):
    """Lifecycle engine wired to fakes."""
    return ConsentLifecycleEngine(
        client=service,
        binder=SignatureBinder(signer),
        store=store,
        identity_provider=identity,
        audit_logger=audit,
    )
