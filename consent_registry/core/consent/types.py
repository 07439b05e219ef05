"""
Consent data types.

Records as delivered by the consent service, plus the closed purpose set
and the status enum the lifecycle state machine operates on.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from consent_registry.core.consent.errors import InvalidPurpose

_NON_ALNUM = re.compile(r"[^0-9a-z]")


def _compact(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


class Purpose(str, Enum):
    """Authorized purposes a patient can consent to.

    Values are the human-readable labels; they are what gets signed and
    what the consent service stores.
    """

    RESEARCH_STUDY_PARTICIPATION = "Research Study Participation"
    DATA_SHARING_WITH_RESEARCH_INSTITUTION = "Data Sharing with Research Institution"
    THIRD_PARTY_ANALYTICS_ACCESS = "Third-Party Analytics Access"
    INSURANCE_PROVIDER_ACCESS = "Insurance Provider Access"

    @classmethod
    def parse(cls, value: Union["Purpose", str, None]) -> "Purpose":
        """Resolve a purpose from its label, member name or compact key.

        "Research Study Participation", "RESEARCH_STUDY_PARTICIPATION" and
        "ResearchStudyParticipation" all resolve to the same member.

        Raises:
            InvalidPurpose: If the value is not one of the authorized purposes
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip():
            wanted = _compact(value)
            for member in cls:
                if wanted in (_compact(member.value), _compact(member.name)):
                    return member
        raise InvalidPurpose(
            f"Unsupported consent purpose: {value!r}",
            context={
                "purpose": value,
                "allowed": [p.value for p in cls],
            },
        )


class ConsentStatus(str, Enum):
    """Status of a consent record."""

    PENDING = "pending"
    ACTIVE = "active"
    REVOKED = "revoked"


# Status filter value meaning "no restriction"
ALL_STATUSES = "all"


def coerce_status(status: Union[ConsentStatus, str, None]) -> Optional[ConsentStatus]:
    """Map a status filter to a ConsentStatus; ``None`` and ``"all"`` mean no filter.

    Raises:
        ValueError: If the string is not a known status
    """
    if status is None or status == ALL_STATUSES:
        return None
    return ConsentStatus(status)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ConsentRecord:
    """A consent record as held by the consent service.

    Instances are never modified; a status change is observed by fetching
    the record again.
    """

    id: str
    subject_id: str
    purpose: Purpose
    wallet_address: str
    message: str
    signature: str
    status: ConsentStatus
    created_at: Optional[datetime] = None
    blockchain_tx_hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ConsentRecord":
        """Create from API response dict.

        Raises:
            ValueError: If the payload lacks an id or carries an unknown
                status or purpose
        """
        record_id = data.get("id", data.get("_id"))
        if record_id is None or record_id == "":
            raise ValueError("consent record has no id")

        try:
            purpose = Purpose.parse(data.get("purpose"))
        except InvalidPurpose as e:
            raise ValueError(e.message) from e

        return cls(
            id=str(record_id),
            subject_id=data.get("subjectId") or data.get("patientId") or "",
            purpose=purpose,
            wallet_address=data.get("walletAddress") or "",
            message=data.get("message") or "",
            signature=data.get("signature") or "",
            status=ConsentStatus(data.get("status")),
            created_at=parse_timestamp(data.get("createdAt")),
            blockchain_tx_hash=data.get("blockchainTxHash") or None,
        )

    def to_dict(self) -> dict:
        """Convert to the camelCase wire shape."""
        return {
            "id": self.id,
            "subjectId": self.subject_id,
            "purpose": self.purpose.value,
            "walletAddress": self.wallet_address,
            "message": self.message,
            "signature": self.signature,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "blockchainTxHash": self.blockchain_tx_hash,
        }

    @property
    def is_anchored(self) -> bool:
        """Whether an on-chain transaction anchors this record."""
        return bool(self.blockchain_tx_hash)


@dataclass(frozen=True)
class TransactionRecord:
    """An anchoring transaction from the platform's transaction history."""

    id: str
    type: str = "unknown"
    blockchain_tx_hash: Optional[str] = None
    from_address: Optional[str] = None
    timestamp: Optional[datetime] = None
    status: str = "confirmed"

    @classmethod
    def from_dict(cls, data: dict) -> "TransactionRecord":
        """Create from API response dict."""
        return cls(
            id=str(data.get("id", data.get("_id", ""))),
            type=data.get("type") or "unknown",
            blockchain_tx_hash=data.get("blockchainTxHash") or None,
            from_address=data.get("from", data.get("walletAddress")) or None,
            timestamp=parse_timestamp(data.get("timestamp")),
            status=data.get("status") or "confirmed",
        )

    @property
    def is_pending(self) -> bool:
        """A transaction without a hash has not been mined yet."""
        return not self.blockchain_tx_hash


class ConsentCreatePayload(BaseModel):
    """Body of ``POST /consents``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    subject_id: str = Field(alias="subjectId", min_length=1)
    purpose: Purpose
    wallet_address: str = Field(alias="walletAddress", min_length=1)
    signature: str = Field(min_length=1)
    message: str = Field(min_length=1)

    def to_wire(self) -> dict:
        """Serialize with camelCase keys and the purpose label."""
        return self.model_dump(by_alias=True, mode="json")


class ConsentStatusUpdate(BaseModel):
    """Body of ``PATCH /consents/{id}``."""

    status: ConsentStatus

    def to_wire(self) -> dict:
        return self.model_dump(mode="json")


class PlatformStats(BaseModel):
    """Platform-wide totals reported by ``GET /stats``."""

    model_config = ConfigDict(populate_by_name=True)

    total_patients: int = Field(default=0, alias="totalPatients")
    total_records: int = Field(default=0, alias="totalRecords")
    total_consents: int = Field(default=0, alias="totalConsents")
    active_consents: int = Field(default=0, alias="activeConsents")
    pending_consents: int = Field(default=0, alias="pendingConsents")
    total_transactions: int = Field(default=0, alias="totalTransactions")

    @property
    def approval_rate(self) -> float:
        """Percentage of consents currently active (one decimal)."""
        if self.total_consents <= 0:
            return 0.0
        return round(self.active_consents / self.total_consents * 100, 1)

    @property
    def pending_rate(self) -> float:
        """Percentage of consents awaiting approval (one decimal)."""
        if self.total_consents <= 0:
            return 0.0
        return round(self.pending_consents / self.total_consents * 100, 1)
